"""Forward-only migration runner for codevault's database schema.

Vec tables (vec_chunks_*) are NOT migration-managed; use ensure_vec_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# Metadata tracker: groups, projects, per-file indexing state.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS groups (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT UNIQUE NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    name             TEXT UNIQUE NOT NULL,
    path             TEXT NOT NULL,
    language         TEXT NOT NULL,
    description      TEXT NOT NULL DEFAULT '',
    group_id         INTEGER REFERENCES groups(id) ON DELETE SET NULL,
    chunk_count      INTEGER NOT NULL DEFAULT 0,
    last_indexed_at  TEXT,
    last_modified_at TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_projects_group ON projects(group_id);

CREATE TABLE IF NOT EXISTS files (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id       INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    file_path        TEXT NOT NULL,
    last_modified_at TEXT,
    last_indexed_at  TEXT,
    chunk_count      INTEGER NOT NULL DEFAULT 0,
    file_hash        TEXT NOT NULL DEFAULT '',
    UNIQUE(project_id, file_path)
);

CREATE INDEX IF NOT EXISTS idx_files_modified ON files(project_id, last_modified_at);
"""

# Vector store rows. Embeddings live in vec_chunks_<model> keyed by rowid.
_V2_SQL = """
CREATE TABLE IF NOT EXISTS code_chunks (
    id              TEXT UNIQUE NOT NULL,
    project         TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    package         TEXT NOT NULL DEFAULT '',
    language        TEXT NOT NULL,
    chunk_type      TEXT NOT NULL,
    name            TEXT NOT NULL,
    receiver        TEXT NOT NULL DEFAULT '',
    code            TEXT NOT NULL,
    line_start      INTEGER NOT NULL,
    line_end        INTEGER NOT NULL,
    doc_string      TEXT NOT NULL DEFAULT '',
    http_endpoints  TEXT NOT NULL DEFAULT '[]',
    http_calls      TEXT NOT NULL DEFAULT '[]',
    imports         TEXT NOT NULL DEFAULT '[]',
    last_modified   TEXT
);

CREATE INDEX IF NOT EXISTS idx_code_chunks_project ON code_chunks(project);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    Vec tables are NOT managed here; use ensure_vec_table() instead.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
