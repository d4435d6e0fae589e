"""codevault database layer: metadata tracker and sqlite-vec vector store."""

from codevault.db.connection import Database
from codevault.db.migrations import MIGRATIONS, run_migrations
from codevault.db.repository import ConflictError, MetadataRepository, NotFoundError
from codevault.db.schema import initialize
from codevault.db.vectors import SqliteVecStore, ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "MetadataRepository",
    "NotFoundError",
    "ConflictError",
    "SqliteVecStore",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
