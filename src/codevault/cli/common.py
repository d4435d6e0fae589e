"""Shared wiring for CLI commands: config, stores, embedder."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console

from codevault.cli.errors import err_config, err_no_api_key, err_store_unavailable
from codevault.config import CodevaultConfig, ConfigError, load_config
from codevault.db.connection import Database
from codevault.db.models import utcnow
from codevault.db.repository import MetadataRepository
from codevault.db.vectors import SqliteVecStore
from codevault.ingest.embedder import EmbeddingConfig, LiteLLMEmbedder, provider_env_var

console = Console()


@dataclass
class CliState:
    """Global options, stored on the typer context by the app callback."""

    config_path: Path | None = None
    verbose: bool = False


def get_config(ctx: typer.Context) -> CodevaultConfig:
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState()
    try:
        return load_config(state.config_path)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from None


def open_db(db_path: Path) -> sqlite3.Connection:
    return Database(db_path).open()


def open_metadata(cfg: CodevaultConfig) -> tuple[sqlite3.Connection, MetadataRepository]:
    conn = open_db(cfg.metadata.db_path)
    return conn, MetadataRepository(conn)


def open_store(cfg: CodevaultConfig) -> SqliteVecStore:
    """Open the vector store, exiting with an actionable message on failure."""
    path = cfg.vector_store.path
    try:
        conn = open_db(path)
    except sqlite3.Error as exc:
        console.print(err_store_unavailable(str(path), str(exc)))
        raise typer.Exit(1) from None
    try:
        return SqliteVecStore(
            conn,
            model=cfg.embedding.model,
            dimensions=cfg.embedding.dimensions,
            batch_size=cfg.vector_store.batch_size,
        )
    except (sqlite3.Error, ValueError) as exc:
        conn.close()
        console.print(err_store_unavailable(str(path), str(exc)))
        raise typer.Exit(1) from None


@contextmanager
def open_stores(
    cfg: CodevaultConfig,
) -> Iterator[tuple[MetadataRepository, SqliteVecStore]]:
    """Metadata repository and vector store; both connections close on exit."""
    conn, repo = open_metadata(cfg)
    try:
        store = open_store(cfg)
        try:
            yield repo, store
        finally:
            store.close()
    finally:
        conn.close()


def build_embedder(cfg: CodevaultConfig) -> LiteLLMEmbedder:
    """Create the embedder, exiting with an actionable message if the key is missing."""
    try:
        return LiteLLMEmbedder(
            EmbeddingConfig(
                model=cfg.embedding.model,
                dimensions=cfg.embedding.dimensions,
                api_base=cfg.embedding.api_base,
                batch_size=cfg.embedding.batch_size,
            )
        )
    except EnvironmentError:
        provider = cfg.embedding.model.split("/")[0].lower()
        console.print(err_no_api_key(provider, provider_env_var(cfg.embedding.model)))
        raise typer.Exit(1) from None


def format_time_ago(value: datetime | None) -> str:
    """Human-readable age of *value* ("3 hours ago"); dates older than a week verbatim."""
    if value is None:
        return "never"
    seconds = (utcnow() - value).total_seconds()
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return _plural(int(seconds // 60), "minute")
    if seconds < 86400:
        return _plural(int(seconds // 3600), "hour")
    if seconds < 7 * 86400:
        return _plural(int(seconds // 86400), "day")
    return value.strftime("%Y-%m-%d %H:%M")


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit} ago" if n == 1 else f"{n} {unit}s ago"
