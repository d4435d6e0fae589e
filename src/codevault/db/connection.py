"""SQLite connections for the metadata tracker and the vector store.

Both stores are SQLite files with the sqlite-vec extension loaded; they may
share one file. ``Database.open()`` is what callers normally want: a
configured connection with the schema migrated to the current version.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from codevault.db.schema import initialize

# Project deletion cascades to files and group deletion ungroups projects,
# both through foreign keys.
_PRAGMAS: tuple[tuple[str, str], ...] = (
    ("foreign_keys", "ON"),
    ("journal_mode", "WAL"),
)


class Database:
    """One codevault SQLite file.

    Args:
        db_path: Database file (parent directories are created on connect),
            or ``":memory:"``.
        busy_timeout_ms: How long a writer waits on a locked database before
            failing, e.g. while another ``codevault index`` run commits.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = 5000) -> None:
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return not isinstance(self.db_path, Path)

    def connect(self) -> sqlite3.Connection:
        """Return a configured connection without touching the schema."""
        if not self.in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        _load_sqlite_vec(conn)
        for name, value in _PRAGMAS:
            conn.execute(f"PRAGMA {name} = {value}")
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and migrate the schema (idempotent)."""
        conn = self.connect()
        try:
            initialize(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def _load_sqlite_vec(conn: sqlite3.Connection) -> None:
    conn.enable_load_extension(True)
    try:
        sqlite_vec.load(conn)
    finally:
        conn.enable_load_extension(False)
