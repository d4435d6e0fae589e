"""Domain models for the codevault database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ChunkType(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    STRUCT = "struct"
    INTERFACE = "interface"


def chunk_id(project: str, file_path: str, name: str) -> str:
    """Return the stable identity of a code unit: ``project:file_path:name``.

    Re-parsing an unchanged unit yields the same id, which is what makes a
    repeated indexing run overwrite instead of duplicate.
    """
    return f"{project}:{file_path}:{name}"


@dataclass(frozen=True)
class CodeChunk:
    """One extracted code unit plus its structural metadata.

    ``file_path`` is relative to the project root (``/`` separators).
    ``receiver`` is only set for methods.
    """

    project: str
    file_path: str
    package: str
    language: str
    chunk_type: ChunkType
    name: str
    code: str
    line_start: int
    line_end: int
    receiver: str = ""
    doc_string: str = ""
    http_endpoints: tuple[str, ...] = ()
    http_calls: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    last_modified: datetime | None = None

    def __post_init__(self) -> None:
        if self.line_start > self.line_end:
            raise ValueError(
                f"line_start ({self.line_start}) > line_end ({self.line_end}) "
                f"for {self.file_path}:{self.name}"
            )

    @property
    def id(self) -> str:
        return chunk_id(self.project, self.file_path, self.name)

    def to_text(self) -> str:
        """Text projection handed to the embedding model."""
        text = ""
        if self.doc_string:
            text += self.doc_string + "\n\n"

        text += f"Project: {self.project}\n"
        text += f"Package: {self.package}\n"
        text += f"Type: {self.chunk_type.value}\n"
        if self.name:
            text += f"Name: {self.name}\n"
        if self.http_endpoints:
            text += "HTTP Endpoints: " + ", ".join(self.http_endpoints) + "\n"
        if self.imports:
            text += "Imports: " + ", ".join(self.imports) + "\n"

        text += "\nCode:\n" + self.code
        return text

    def to_metadata(self) -> dict[str, Any]:
        """Flatten to the column mapping stored alongside the embedding."""
        return {
            "id": self.id,
            "project": self.project,
            "file_path": self.file_path,
            "package": self.package,
            "language": self.language,
            "chunk_type": self.chunk_type.value,
            "name": self.name,
            "receiver": self.receiver,
            "code": self.code,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "doc_string": self.doc_string,
            "http_endpoints": json.dumps(list(self.http_endpoints)),
            "http_calls": json.dumps(list(self.http_calls)),
            "imports": json.dumps(list(self.imports)),
            "last_modified": to_db_time(self.last_modified),
        }

    @classmethod
    def from_metadata(cls, row: Any) -> CodeChunk:
        """Rebuild a chunk from a ``to_metadata()`` mapping or sqlite3.Row."""
        return cls(
            project=row["project"],
            file_path=row["file_path"],
            package=row["package"],
            language=row["language"],
            chunk_type=ChunkType(row["chunk_type"]),
            name=row["name"],
            receiver=row["receiver"] or "",
            code=row["code"],
            line_start=row["line_start"],
            line_end=row["line_end"],
            doc_string=row["doc_string"] or "",
            http_endpoints=tuple(json.loads(row["http_endpoints"] or "[]")),
            http_calls=tuple(json.loads(row["http_calls"] or "[]")),
            imports=tuple(json.loads(row["imports"] or "[]")),
            last_modified=from_db_time(row["last_modified"]),
        )


@dataclass
class SearchResult:
    chunk: CodeChunk
    score: float
    distance: float


@dataclass
class Group:
    name: str
    description: str = ""
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Project:
    name: str
    path: str
    language: str
    description: str = ""
    group_id: int | None = None
    group_name: str = ""  # populated from the groups join on reads
    chunk_count: int = 0
    last_indexed_at: datetime | None = None  # None = never indexed
    last_modified_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class File:
    project_id: int
    file_path: str
    last_modified_at: datetime | None = None
    last_indexed_at: datetime | None = None
    chunk_count: int = 0
    file_hash: str = ""
    id: int | None = None

    @property
    def is_stale(self) -> bool:
        """True when the file was never indexed or changed since it was."""
        if self.last_indexed_at is None:
            return True
        if self.last_modified_at is None:
            return False
        return self.last_modified_at > self.last_indexed_at


@dataclass
class ProjectFilter:
    group_id: int | None = None
    group_name: str = ""
    name: str = ""


@dataclass
class SourceFile:
    """Per-file outcome of one extraction pass."""

    path: str
    modified_at: datetime | None
    content_hash: str
    chunks: list[CodeChunk] = field(default_factory=list)
    error: str | None = None  # set when the file was skipped


# ------------------------------------------------------------------
# Timestamp helpers
# ------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime | None) -> str | None:
    """Serialise to fixed-width ISO-8601 UTC so SQL string order is time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
