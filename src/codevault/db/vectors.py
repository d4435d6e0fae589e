"""Code-chunk vector store on sqlite-vec.

Chunk rows live in ``code_chunks`` (unique ``id``, upsert-by-id); embeddings
live in a per-model ``vec_chunks_<slug>`` vec0 table whose rowid equals the
``code_chunks`` rowid. Search ranks the filtered rows by cosine distance.
"""

from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Sequence
from typing import Any

from codevault.db.models import CodeChunk, SearchResult

_DEFAULT_BATCH_SIZE = 1000

# Filter keys that map 1:1 onto code_chunks columns.
_EQ_FILTERS = ("project", "language", "chunk_type", "package", "file_path")

_CHUNK_COLUMNS = (
    "id",
    "project",
    "file_path",
    "package",
    "language",
    "chunk_type",
    "name",
    "receiver",
    "code",
    "line_start",
    "line_end",
    "doc_string",
    "http_endpoints",
    "http_calls",
    "imports",
    "last_modified",
)


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "ollama/bge-m3" -> "ollama_bge_m3"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} virtual table if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_chunks_{model_slug}).
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}'; use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()

    return table


class SqliteVecStore:
    """Vector store over an open, schema-initialised SQLite connection.

    Args:
        conn: Connection with sqlite-vec loaded (see codevault.db.connection).
        model: Embedding model string; selects the vec table.
        dimensions: Embedding size for that model.
        batch_size: Rows per committed write batch in ``insert_batch``.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        model: str,
        dimensions: int,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._conn = conn
        self._table = ensure_vec_table(conn, model_to_slug(model), dimensions)
        self._batch_size = batch_size

    @property
    def table(self) -> str:
        return self._table

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_batch(
        self, chunks: Sequence[CodeChunk], vectors: Sequence[Sequence[float]]
    ) -> None:
        """Upsert *chunks* with their embeddings, ``batch_size`` rows per commit.

        A chunk whose id already exists replaces the stored row and vector.
        """
        if len(chunks) != len(vectors):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} vs {len(vectors)}"
            )

        for start in range(0, len(chunks), self._batch_size):
            end = start + self._batch_size
            try:
                for chunk, vector in zip(chunks[start:end], vectors[start:end]):
                    self._upsert(chunk, vector)
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise RuntimeError(
                    f"failed to insert batch [{start}:{min(end, len(chunks))}]: {exc}"
                ) from exc
            self._conn.commit()

    def _upsert(self, chunk: CodeChunk, vector: Sequence[float]) -> None:
        meta = chunk.to_metadata()
        placeholders = ", ".join("?" * len(_CHUNK_COLUMNS))
        updates = ", ".join(f"{c} = excluded.{c}" for c in _CHUNK_COLUMNS if c != "id")
        self._conn.execute(
            f"""
            INSERT INTO code_chunks ({", ".join(_CHUNK_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}
            """,
            [meta[c] for c in _CHUNK_COLUMNS],
        )
        rowid = self._conn.execute(
            "SELECT rowid FROM code_chunks WHERE id = ?", (chunk.id,)
        ).fetchone()[0]
        # vec0 has no upsert; replace the vector explicitly.
        self._conn.execute(f"DELETE FROM {self._table} WHERE rowid = ?", (rowid,))
        self._conn.execute(
            f"INSERT INTO {self._table}(rowid, embedding) VALUES (?, ?)",
            (rowid, json.dumps(list(vector))),
        )

    def delete(self, project_name: str) -> int:
        """Delete every chunk and embedding of *project_name* from all vec tables.

        Returns the number of chunk rows removed (0 if the project is unknown).
        """
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM code_chunks WHERE project = ?", (project_name,)
            ).fetchall()
        ]
        if not rowids:
            return 0

        # vec0 shadow tables share the prefix; only the virtual tables are addressed.
        vec_tables = [
            r[0]
            for r in self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' "
                "AND name LIKE 'vec_chunks_%' AND sql LIKE 'CREATE VIRTUAL TABLE%'"
            ).fetchall()
        ]
        for table in vec_tables:
            self._conn.executemany(
                f"DELETE FROM [{table}] WHERE rowid = ?",  # noqa: S608
                [(rowid,) for rowid in rowids],
            )
        cur = self._conn.execute("DELETE FROM code_chunks WHERE project = ?", (project_name,))
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Cosine nearest-neighbour search. Returns results best-first.

        Recognised filters: ``project``, ``language``, ``chunk_type``,
        ``package``, ``file_path`` (exact match) and ``projects`` (match any).
        Unknown keys and an empty ``projects`` list are ignored.
        """
        where, args = _build_where(filters or {})
        sql = f"""
            SELECT c.*, vec_distance_cosine(v.embedding, ?) AS distance
            FROM code_chunks c
            JOIN {self._table} v ON v.rowid = c.rowid
            {where}
            ORDER BY distance
            LIMIT ?
        """
        rows = self._conn.execute(
            sql, [json.dumps(list(query_vector)), *args, limit]
        ).fetchall()
        return [
            SearchResult(
                chunk=CodeChunk.from_metadata(row),
                score=1.0 - row["distance"],
                distance=row["distance"],
            )
            for row in rows
        ]

    def get(self, id: str) -> CodeChunk | None:
        """Return the chunk stored under *id*, or None if absent."""
        row = self._conn.execute("SELECT * FROM code_chunks WHERE id = ?", (id,)).fetchone()
        return CodeChunk.from_metadata(row) if row else None

    def list_projects(self) -> list[str]:
        """Return the sorted names of all projects with stored chunks."""
        rows = self._conn.execute(
            "SELECT DISTINCT project FROM code_chunks ORDER BY project"
        ).fetchall()
        return [r[0] for r in rows]

    def count(self, project_name: str | None = None) -> int:
        if project_name is None:
            return self._conn.execute("SELECT COUNT(*) FROM code_chunks").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM code_chunks WHERE project = ?", (project_name,)
        ).fetchone()[0]

    def close(self) -> None:
        self._conn.close()


def _build_where(filters: dict[str, Any]) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    args: list[Any] = []
    for key, value in filters.items():
        if key in _EQ_FILTERS and isinstance(value, str):
            clauses.append(f"c.{key} = ?")
            args.append(value)
        elif key == "projects" and isinstance(value, (list, tuple)) and value:
            clauses.append(f"c.project IN ({','.join('?' * len(value))})")
            args.extend(value)
    if not clauses:
        return "", []
    return "WHERE " + " AND ".join(clauses), args
