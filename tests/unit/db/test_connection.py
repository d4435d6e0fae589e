"""Tests for the SQLite connection layer."""

from __future__ import annotations

import sqlite3

import pytest

from codevault.db.connection import Database
from codevault.db.schema import CURRENT_VERSION, schema_version


@pytest.fixture
def conn(tmp_path):
    c = Database(tmp_path / "codevault.db").connect()
    yield c
    c.close()


# --- connect() ---

def test_connect_creates_parent_directories(tmp_path):
    db_path = tmp_path / "home" / ".codevault" / "metadata.db"
    Database(db_path).connect().close()
    assert db_path.exists()


def test_connect_leaves_schema_alone(conn):
    assert schema_version(conn) == 0


@pytest.mark.parametrize("pragma,expected", [
    ("foreign_keys", 1),
    ("journal_mode", "wal"),
    ("busy_timeout", 5000),
])
def test_connection_pragmas(conn, pragma, expected):
    assert conn.execute(f"PRAGMA {pragma}").fetchone()[0] == expected


def test_custom_busy_timeout(tmp_path):
    c = Database(tmp_path / "codevault.db", busy_timeout_ms=250).connect()
    try:
        assert c.execute("PRAGMA busy_timeout").fetchone()[0] == 250
    finally:
        c.close()


def test_vec_functions_available(conn):
    assert conn.execute("SELECT vec_version()").fetchone()[0].startswith("v")
    distance = conn.execute(
        "SELECT vec_distance_cosine(vec_f32('[1, 0]'), vec_f32('[1, 0]'))"
    ).fetchone()[0]
    assert distance == pytest.approx(0.0)


def test_extension_loading_disabled_after_connect(conn):
    with pytest.raises(sqlite3.OperationalError):
        conn.execute("SELECT load_extension('does-not-exist')")


def test_rows_addressable_by_column(conn):
    row = conn.execute("SELECT 'svc' AS name, 3 AS chunk_count").fetchone()
    assert row["name"] == "svc"
    assert row["chunk_count"] == 3


# --- open() / context manager ---

def test_open_migrates_to_current_version(tmp_path):
    c = Database(tmp_path / "codevault.db").open()
    try:
        assert schema_version(c) == CURRENT_VERSION
    finally:
        c.close()


def test_open_twice_is_idempotent(tmp_path):
    path = tmp_path / "codevault.db"
    Database(path).open().close()
    c = Database(path).open()
    try:
        assert schema_version(c) == CURRENT_VERSION
    finally:
        c.close()


def test_memory_database():
    db = Database(":memory:")
    assert db.in_memory
    with db as c:
        assert schema_version(c) == CURRENT_VERSION


def test_string_path_is_normalised(tmp_path):
    db = Database(str(tmp_path / "codevault.db"))
    assert not db.in_memory
    assert db.db_path == tmp_path / "codevault.db"


def test_context_manager_closes_connection(tmp_path):
    with Database(tmp_path / "codevault.db") as c:
        c.execute("SELECT 1")
    with pytest.raises(sqlite3.ProgrammingError):
        c.execute("SELECT 1")
