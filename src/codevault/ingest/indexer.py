"""Indexing orchestrator: extract → embed → store → sync metadata.

A run is a fixed sequence of steps, each mapped to one failure kind:

  clean     optional; wipe the project's vector entries and metadata row
  parse     walk and extract (fatal only on traversal errors or no chunks)
  embed     one embed_batch() call over every chunk's text projection
  store     one insert_batch() call (upsert by chunk id)
  metadata  group, project and per-file rows

The vector store and the metadata tracker are not updated atomically: a
metadata failure after a successful store leaves the vectors in place and is
reported as MetadataSyncError. A run without ``clean`` never deletes, so
units removed from the source stay in the vector store until a clean run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from codevault.db.models import CodeChunk, File, Project, SourceFile, utcnow
from codevault.db.repository import MetadataRepository, NotFoundError
from codevault.ingest.base import BaseExtractor, Embedder, TraversalError, VectorStore

logger = logging.getLogger(__name__)


class IndexingError(RuntimeError):
    """An indexing run failed at ``step`` (clean, parse, embed, store, metadata)."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step


class EmptyIndexError(IndexingError):
    """Extraction produced no chunks; nothing was embedded or stored."""

    def __init__(self, project_path: str) -> None:
        super().__init__("parse", f"no code chunks found in {project_path}")
        self.project_path = project_path


class MetadataSyncError(IndexingError):
    """Chunks were stored but the metadata tracker could not be updated."""

    def __init__(self, message: str, chunk_count: int) -> None:
        super().__init__("metadata", message)
        self.chunk_count = chunk_count


class Indexer:
    """Run indexing for one project at a time.

    Args:
        extractor: Structural extractor for the project's language.
        embedder:  Embedding collaborator.
        store:     Vector store collaborator (upserts by chunk id).
        metadata:  Metadata tracker; when None, metadata steps are skipped.
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        embedder: Embedder,
        store: VectorStore,
        metadata: MetadataRepository | None = None,
    ) -> None:
        self._extractor = extractor
        self._embedder = embedder
        self._store = store
        self._metadata = metadata

    def index_project(
        self,
        project_path: Path | str,
        project_name: str,
        *,
        clean: bool = False,
        group: str | None = None,
        description: str = "",
    ) -> int:
        """Index *project_path* under *project_name*. Returns the chunk count.

        Raises:
            EmptyIndexError: If no chunks were extracted.
            MetadataSyncError: If chunks were stored but metadata sync failed.
            IndexingError: On any other step failure (see ``.step``).
        """
        root = Path(project_path).resolve()
        logger.info("Indexing project %s from %s", project_name, root)

        if clean:
            self._clean(project_name)

        files = self._parse(root, project_name)
        chunks = [c for f in files for c in f.chunks]
        if not chunks:
            raise EmptyIndexError(str(root))
        logger.info("Extracted %d chunks from %d files", len(chunks), len(files))

        vectors = self._embed(chunks)

        try:
            self._store.insert_batch(chunks, vectors)
        except Exception as exc:
            raise IndexingError("store", str(exc)) from exc
        logger.info("Stored %d chunks", len(chunks))

        if self._metadata is not None:
            try:
                self._sync_metadata(
                    self._metadata, root, project_name, files, len(chunks), group, description
                )
            except Exception as exc:
                raise MetadataSyncError(str(exc), len(chunks)) from exc

        logger.info("Indexed %s: %d chunks", project_name, len(chunks))
        return len(chunks)

    def delete_project(self, project_name: str) -> None:
        """Remove a project's vector entries and metadata (files cascade).

        A missing metadata row is not an error.
        """
        remove_project(self._store, self._metadata, project_name)

    def list_projects(self) -> list[str]:
        """Return the names of projects present in the vector store."""
        return self._store.list_projects()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _clean(self, project_name: str) -> None:
        logger.info("Cleaning existing data for %s", project_name)
        try:
            self.delete_project(project_name)
        except Exception as exc:
            raise IndexingError("clean", str(exc)) from exc

    def _parse(self, root: Path, project_name: str) -> list[SourceFile]:
        try:
            return self._extractor.parse_files(root, project_name)
        except TraversalError as exc:
            raise IndexingError("parse", str(exc)) from exc

    def _embed(self, chunks: Sequence[CodeChunk]) -> list[list[float]]:
        texts = [c.to_text() for c in chunks]
        try:
            vectors = self._embedder.embed_batch(texts)
        except Exception as exc:
            raise IndexingError("embed", str(exc)) from exc
        if len(vectors) != len(chunks):
            raise IndexingError(
                "embed", f"expected {len(chunks)} embeddings, got {len(vectors)}"
            )
        return vectors

    def _sync_metadata(
        self,
        repo: MetadataRepository,
        root: Path,
        project_name: str,
        files: Sequence[SourceFile],
        chunk_count: int,
        group: str | None,
        description: str,
    ) -> None:
        now = utcnow()

        group_id = None
        if group:
            try:
                group_id = repo.get_group(group).id
            except NotFoundError:
                group_id = repo.create_group(group).id

        mtimes = [f.modified_at for f in files if f.modified_at is not None]
        last_modified = max(mtimes) if mtimes else None

        try:
            existing = repo.get_project(project_name)
        except NotFoundError:
            existing = None

        if existing is None:
            project = repo.create_project(
                Project(
                    name=project_name,
                    path=str(root),
                    language=self._extractor.language,
                    description=description,
                    group_id=group_id,
                    chunk_count=chunk_count,
                    last_indexed_at=now,
                    last_modified_at=last_modified,
                )
            )
        else:
            existing.path = str(root)
            existing.language = self._extractor.language
            existing.chunk_count = chunk_count
            existing.last_indexed_at = now
            existing.last_modified_at = last_modified
            if description:
                existing.description = description
            if group_id is not None:
                existing.group_id = group_id
            project = repo.update_project(existing)

        for source in files:
            repo.upsert_file(
                File(
                    project_id=project.id,
                    file_path=source.path,
                    last_modified_at=source.modified_at,
                    last_indexed_at=None if source.error else now,
                    chunk_count=len(source.chunks),
                    file_hash=source.content_hash,
                )
            )


def remove_project(
    store: VectorStore, metadata: MetadataRepository | None, project_name: str
) -> None:
    """Delete vector entries first, then the metadata row (files cascade).

    Shared by clean runs and ``codevault delete``. A missing metadata row is
    not an error.
    """
    store.delete(project_name)
    if metadata is None:
        return
    try:
        metadata.delete_project(project_name)
    except NotFoundError:
        logger.debug("No metadata row for %s", project_name)
