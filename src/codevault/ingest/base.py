"""Extractor contract and collaborator protocols for the indexing pipeline.

``BaseExtractor`` owns the language-independent part of extraction (tree
traversal, per-file error tolerance, hashing); subclasses turn one source
file into CodeChunks. ``Embedder`` and ``VectorStore`` describe the two
external services the indexer talks to.
"""

from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from codevault.db.models import CodeChunk, SearchResult, SourceFile

logger = logging.getLogger(__name__)

# Dependency directories never worth indexing.
_SKIP_DIRS = frozenset({"vendor", "node_modules"})


class TraversalError(OSError):
    """Raised when the project tree cannot be walked (fatal to the run)."""


class ParseError(ValueError):
    """Raised by an extractor when a single file cannot be parsed."""


class BaseExtractor(ABC):
    """Abstract base for all structural extractors.

    Subclasses set ``language`` and ``extensions`` and implement
    ``parse_source()``; traversal and partial-failure handling live here.
    """

    language: str = ""
    extensions: tuple[str, ...] = ()

    @abstractmethod
    def parse_source(
        self,
        source: bytes,
        file_path: str,
        project_name: str,
        modified_at: datetime | None = None,
    ) -> list[CodeChunk]:
        """Extract the chunks of one file.

        Args:
            source: Raw file bytes.
            file_path: Path relative to the project root (``/`` separators).
            project_name: Name the chunks are filed under.
            modified_at: Modification time of the file, copied onto each chunk.

        Returns:
            Chunks in declaration order.

        Raises:
            ParseError: If the file is not syntactically valid.
        """

    def parse(self, project_path: Path | str, project_name: str) -> list[CodeChunk]:
        """Return every chunk in the project tree, file by file."""
        return [c for f in self.parse_files(project_path, project_name) for c in f.chunks]

    def parse_files(self, project_path: Path | str, project_name: str) -> list[SourceFile]:
        """Parse every source file under *project_path*.

        A file that cannot be read or parsed is logged and returned with
        ``error`` set and no chunks; the walk continues.

        Raises:
            TraversalError: If a directory cannot be read.
        """
        root = Path(project_path)
        results: list[SourceFile] = []
        for path in self.walk(root):
            rel_path = path.relative_to(root).as_posix()
            try:
                modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                source = path.read_bytes()
            except OSError as exc:
                logger.warning("Failed to read %s: %s", path, exc)
                results.append(
                    SourceFile(path=rel_path, modified_at=None, content_hash="", error=str(exc))
                )
                continue

            content_hash = hashlib.sha256(source).hexdigest()
            try:
                chunks = self.parse_source(source, rel_path, project_name, modified_at)
            except ParseError as exc:
                logger.warning("Failed to parse %s: %s", path, exc)
                results.append(
                    SourceFile(
                        path=rel_path,
                        modified_at=modified_at,
                        content_hash=content_hash,
                        error=str(exc),
                    )
                )
                continue

            results.append(
                SourceFile(
                    path=rel_path,
                    modified_at=modified_at,
                    content_hash=content_hash,
                    chunks=chunks,
                )
            )
        return results

    def walk(self, root: Path) -> Iterator[Path]:
        """Yield source files under *root* in sorted, top-down order.

        Skips ``vendor``, ``node_modules`` and hidden directories below the
        root; the root itself is always entered.
        """

        def _on_error(exc: OSError) -> None:
            raise TraversalError(f"failed to walk project directory: {exc}") from exc

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            dirnames[:] = sorted(d for d in dirnames if not _is_skipped_dir(d))
            for name in sorted(filenames):
                if name.endswith(self.extensions):
                    yield Path(dirpath) / name


def _is_skipped_dir(name: str) -> bool:
    if name in _SKIP_DIRS:
        return True
    return len(name) > 1 and name.startswith(".")


# ------------------------------------------------------------------
# Collaborators
# ------------------------------------------------------------------


@runtime_checkable
class Embedder(Protocol):
    """Turns text into vectors. Failures propagate to the caller."""

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...

    def dimensions(self) -> int: ...


@runtime_checkable
class VectorStore(Protocol):
    """Stores chunk embeddings. ``insert_batch`` is expected to upsert by id."""

    def insert_batch(
        self, chunks: Sequence[CodeChunk], vectors: Sequence[Sequence[float]]
    ) -> None: ...

    def delete(self, project_name: str) -> Any: ...

    def search(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]: ...

    def list_projects(self) -> list[str]: ...

    def get(self, id: str) -> CodeChunk | None: ...

    def close(self) -> None: ...
