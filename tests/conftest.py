"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Sequence

import pytest
import yaml

# Keep litellm from fetching its model cost map over the network at import time.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from codevault.db.connection import Database

FAKE_DIMS = 8


class FakeEmbedder:
    """Deterministic, offline embedder: same text → same non-zero vector."""

    def __init__(self, dims: int = FAKE_DIMS) -> None:
        self.dims = dims
        self.calls: list[list[str]] = []

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def dimensions(self) -> int:
        return self.dims

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(digest[i] + 1) / 256.0 for i in range(self.dims)]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / "codevault.db").open()
    yield conn
    conn.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def cli_config(tmp_path, monkeypatch):
    """Config file with a local 8-dim model and both databases under tmp_path."""
    for name in ("CODEVAULT_EMBEDDING_MODEL", "CODEVAULT_VECTOR_DB", "CODEVAULT_METADATA_DB"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "embedding": {"model": "ollama/test-embed", "dimensions": FAKE_DIMS},
                "vector_store": {"path": str(tmp_path / "vectors.db")},
                "metadata": {"db_path": str(tmp_path / "metadata.db")},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def cli_embedder(monkeypatch, fake_embedder):
    """Route the CLI's embedder construction to the offline fake."""
    monkeypatch.setattr("codevault.cli.common.build_embedder", lambda cfg: fake_embedder)
    return fake_embedder
