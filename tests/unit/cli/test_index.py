"""Tests for codevault index / query / init / version."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from typer.testing import CliRunner

from codevault.cli import common
from codevault.cli.main import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _invoke(cfg: Path, *args: str, **kwargs):
    return runner.invoke(app, ["--config", str(cfg), *args], **kwargs)


def _project(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "file.go").write_text(
        "package main\n\n// Foo greets.\nfunc (t T) Foo() {}\n\ntype T struct{}\n",
        encoding="utf-8",
    )
    (root / "README.md").write_text("# proj\n", encoding="utf-8")
    return root


@pytest.fixture
def proj(tmp_path: Path) -> Path:
    return _project(tmp_path / "proj")


# ---------------------------------------------------------------------------
# codevault index
# ---------------------------------------------------------------------------


def test_index_success(cli_config, cli_embedder, proj) -> None:
    result = _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")
    assert result.exit_code == 0, result.output
    assert "Indexed 2 chunks" in result.output
    assert len(cli_embedder.calls) == 1


def test_index_with_group_and_clean(cli_config, cli_embedder, proj) -> None:
    _invoke(cli_config, "index", "-p", str(proj), "-n", "proj")
    result = _invoke(
        cli_config, "index", "-p", str(proj), "-n", "proj", "--group", "backend", "--clean"
    )
    assert result.exit_code == 0, result.output
    assert "Cleaning existing data" in result.output
    assert "Group: backend" in result.output


def test_index_missing_path_exits_1(cli_config, cli_embedder, tmp_path) -> None:
    result = _invoke(cli_config, "index", "--path", str(tmp_path / "missing"), "--name", "x")
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_index_no_go_code_exits_1(cli_config, cli_embedder, tmp_path) -> None:
    root = tmp_path / "docs"
    root.mkdir()
    (root / "README.md").write_text("# docs\n", encoding="utf-8")

    result = _invoke(cli_config, "index", "--path", str(root), "--name", "docs")
    assert result.exit_code == 1
    assert "No go code found" in result.output
    assert cli_embedder.calls == []


def test_index_embed_failure_exits_1(cli_config, proj, monkeypatch) -> None:
    broken = MagicMock()
    broken.embed_batch.side_effect = RuntimeError("provider unavailable")
    monkeypatch.setattr("codevault.cli.common.build_embedder", lambda cfg: broken)

    result = _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")
    assert result.exit_code == 1
    assert "Indexing failed during 'embed'" in result.output


def test_index_missing_api_key_exits_1(tmp_path, proj, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    cfg = tmp_path / "openai.yaml"
    cfg.write_text(
        yaml.safe_dump(
            {
                "embedding": {"model": "openai/text-embedding-3-small"},
                "vector_store": {"path": str(tmp_path / "v.db")},
                "metadata": {"db_path": str(tmp_path / "m.db")},
            }
        ),
        encoding="utf-8",
    )

    result = _invoke(cfg, "index", "--path", str(proj), "--name", "proj")
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_index_store_open_failure_closes_metadata(
    cli_config, cli_embedder, proj, monkeypatch
) -> None:
    opened = []
    real_open_metadata = common.open_metadata

    def open_metadata(cfg):
        conn, repo = real_open_metadata(cfg)
        opened.append(conn)
        return conn, repo

    monkeypatch.setattr(common, "open_metadata", open_metadata)
    monkeypatch.setattr(
        common, "SqliteVecStore", MagicMock(side_effect=ValueError("batch_size must be >= 1"))
    )

    result = _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")
    assert result.exit_code == 1
    assert "Cannot open the vector store" in result.output
    assert cli_embedder.calls == []
    [conn] = opened
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")


def test_invalid_config_exits_1(tmp_path, proj) -> None:
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("embedding:\n  api_key: sk-123\n", encoding="utf-8")

    result = _invoke(cfg, "index", "--path", str(proj), "--name", "proj")
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


# ---------------------------------------------------------------------------
# codevault query
# ---------------------------------------------------------------------------


def test_query_returns_results(cli_config, cli_embedder, proj) -> None:
    _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")

    result = _invoke(cli_config, "query", "--query", "greeting", "--project", "proj")
    assert result.exit_code == 0, result.output
    assert "Found 2 results" in result.output
    assert "Foo" in result.output
    assert "receiver T" in result.output


def test_query_limit(cli_config, cli_embedder, proj) -> None:
    _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")

    result = _invoke(cli_config, "query", "-q", "greeting", "--limit", "1")
    assert result.exit_code == 0, result.output
    assert "Found 1 results" in result.output


def test_query_no_results(cli_config, cli_embedder) -> None:
    result = _invoke(cli_config, "query", "-q", "anything")
    assert result.exit_code == 0
    assert "No results." in result.output


def test_query_unknown_project_no_results(cli_config, cli_embedder, proj) -> None:
    _invoke(cli_config, "index", "--path", str(proj), "--name", "proj")

    result = _invoke(cli_config, "query", "-q", "greeting", "-p", "other")
    assert result.exit_code == 0
    assert "No results." in result.output


def test_query_by_group(cli_config, cli_embedder, tmp_path) -> None:
    a = _project(tmp_path / "a")
    b = _project(tmp_path / "b")
    _invoke(cli_config, "index", "-p", str(a), "-n", "alpha", "-g", "backend")
    _invoke(cli_config, "index", "-p", str(b), "-n", "beta")

    result = _invoke(cli_config, "query", "-q", "greeting", "-g", "backend", "-l", "10")
    assert result.exit_code == 0, result.output
    assert "Searching group 'backend': alpha" in result.output
    assert "Found 2 results" in result.output


def test_query_project_and_group_exits_1(cli_config, cli_embedder) -> None:
    result = _invoke(cli_config, "query", "-q", "x", "-p", "proj", "-g", "backend")
    assert result.exit_code == 1
    assert "Cannot specify both" in result.output


def test_query_empty_group_exits_1(cli_config, cli_embedder) -> None:
    result = _invoke(cli_config, "query", "-q", "x", "-g", "nobody")
    assert result.exit_code == 1
    assert "No projects found in group" in result.output


def test_query_dimension_mismatch_exits_1(cli_config, monkeypatch) -> None:
    embedder = MagicMock()
    embedder.embed.side_effect = ValueError("embedding has 3 dimensions, expected 8")
    monkeypatch.setattr("codevault.cli.common.build_embedder", lambda cfg: embedder)

    result = _invoke(cli_config, "query", "-q", "x")
    assert result.exit_code == 1
    assert "expected 8" in result.output


# ---------------------------------------------------------------------------
# codevault init / version
# ---------------------------------------------------------------------------


def test_init_creates_config_and_databases(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("CODEVAULT_EMBEDDING_MODEL", raising=False)
    monkeypatch.setenv("CODEVAULT_VECTOR_DB", str(tmp_path / "v.db"))
    monkeypatch.setenv("CODEVAULT_METADATA_DB", str(tmp_path / "m.db"))
    cfg = tmp_path / "cv" / "config.yaml"

    result = _invoke(cfg, "init")
    assert result.exit_code == 0, result.output
    assert cfg.exists()
    assert (tmp_path / "v.db").exists()
    assert (tmp_path / "m.db").exists()
    assert "codevault initialized" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("codevault ")
