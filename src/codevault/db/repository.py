"""Metadata tracker: repository for groups, projects, and per-file state.

Single interface for: groups, projects (with their group join), files, and the
two derived queries (projects by group, stale files). Every mutating method
commits before returning; the connection is owned by the caller.
"""

from __future__ import annotations

import sqlite3

from codevault.db.models import (
    File,
    Group,
    Project,
    ProjectFilter,
    from_db_time,
    to_db_time,
    utcnow,
)


class NotFoundError(LookupError):
    """Raised when a group, project, or file does not exist."""


class ConflictError(ValueError):
    """Raised when a group or project name is already taken."""


_PROJECT_SELECT = """
    SELECT p.id, p.name, p.path, p.language, p.description, p.group_id,
           g.name AS group_name, p.chunk_count, p.last_indexed_at,
           p.last_modified_at, p.created_at, p.updated_at
    FROM projects p
    LEFT JOIN groups g ON p.group_id = g.id
"""

_FILE_SELECT = """
    SELECT id, project_id, file_path, last_modified_at, last_indexed_at,
           chunk_count, file_hash
    FROM files
"""


class MetadataRepository:
    """Data access layer for the metadata tracker.

    Wraps an open sqlite3.Connection with foreign keys enabled and schema
    initialised (see codevault.db.schema.initialize).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, name: str, description: str = "") -> Group:
        """Insert a new group and return it with its id and timestamps.

        Raises:
            ConflictError: If a group called *name* already exists.
        """
        now = to_db_time(utcnow())
        try:
            cur = self._conn.execute(
                """
                INSERT INTO groups (name, description, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, description, now, now),
            )
        except sqlite3.IntegrityError:
            self._conn.rollback()
            raise ConflictError(f"group already exists: {name}") from None
        self._conn.commit()
        return self._get_group_by_id(cur.lastrowid)

    def get_group(self, name: str) -> Group:
        row = self._conn.execute(
            "SELECT id, name, description, created_at, updated_at FROM groups WHERE name = ?",
            (name,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"group not found: {name}")
        return _row_to_group(row)

    def list_groups(self) -> list[Group]:
        """Return all groups ordered by name."""
        rows = self._conn.execute(
            "SELECT id, name, description, created_at, updated_at FROM groups ORDER BY name"
        ).fetchall()
        return [_row_to_group(r) for r in rows]

    def update_group(self, name: str, description: str) -> Group:
        cur = self._conn.execute(
            "UPDATE groups SET description = ?, updated_at = ? WHERE name = ?",
            (description, to_db_time(utcnow()), name),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"group not found: {name}")
        return self.get_group(name)

    def delete_group(self, name: str) -> None:
        """Delete a group. Member projects stay; their group_id becomes NULL."""
        cur = self._conn.execute("DELETE FROM groups WHERE name = ?", (name,))
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"group not found: {name}")

    def _get_group_by_id(self, group_id: int) -> Group:
        row = self._conn.execute(
            "SELECT id, name, description, created_at, updated_at FROM groups WHERE id = ?",
            (group_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"group not found: id={group_id}")
        return _row_to_group(row)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        """Insert *project* and return the stored row (id, group name, timestamps).

        Raises:
            ConflictError: If a project with the same name exists.
            NotFoundError: If ``project.group_id`` references no group.
        """
        now = to_db_time(utcnow())
        try:
            self._conn.execute(
                """
                INSERT INTO projects (name, path, language, description, group_id,
                                      chunk_count, last_indexed_at, last_modified_at,
                                      created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project.name,
                    project.path,
                    project.language,
                    project.description,
                    project.group_id,
                    project.chunk_count,
                    to_db_time(project.last_indexed_at),
                    to_db_time(project.last_modified_at),
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise _integrity_to_domain(exc, project) from None
        self._conn.commit()
        return self.get_project(project.name)

    def get_project(self, name: str) -> Project:
        row = self._conn.execute(_PROJECT_SELECT + " WHERE p.name = ?", (name,)).fetchone()
        if row is None:
            raise NotFoundError(f"project not found: {name}")
        return _row_to_project(row)

    def list_projects(self, filter: ProjectFilter | None = None) -> list[Project]:
        """Return projects ordered by name, optionally narrowed by *filter*."""
        sql = _PROJECT_SELECT + " WHERE 1=1"
        args: list[object] = []
        if filter is not None:
            if filter.group_id is not None:
                sql += " AND p.group_id = ?"
                args.append(filter.group_id)
            if filter.group_name:
                sql += " AND g.name = ?"
                args.append(filter.group_name)
            if filter.name:
                sql += " AND p.name = ?"
                args.append(filter.name)
        sql += " ORDER BY p.name"
        return [_row_to_project(r) for r in self._conn.execute(sql, args).fetchall()]

    def update_project(self, project: Project) -> Project:
        """Overwrite the mutable columns of the project named ``project.name``."""
        try:
            cur = self._conn.execute(
                """
                UPDATE projects
                SET path = ?, language = ?, description = ?, group_id = ?,
                    chunk_count = ?, last_indexed_at = ?, last_modified_at = ?,
                    updated_at = ?
                WHERE name = ?
                """,
                (
                    project.path,
                    project.language,
                    project.description,
                    project.group_id,
                    project.chunk_count,
                    to_db_time(project.last_indexed_at),
                    to_db_time(project.last_modified_at),
                    to_db_time(utcnow()),
                    project.name,
                ),
            )
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise _integrity_to_domain(exc, project) from None
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"project not found: {project.name}")
        return self.get_project(project.name)

    def delete_project(self, name: str) -> None:
        """Delete a project; its file rows go with it (ON DELETE CASCADE)."""
        cur = self._conn.execute("DELETE FROM projects WHERE name = ?", (name,))
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"project not found: {name}")

    def get_projects_by_group(self, group_name: str) -> list[Project]:
        return self.list_projects(ProjectFilter(group_name=group_name))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upsert_file(self, file: File) -> File:
        """Insert or overwrite the row for ``(file.project_id, file.file_path)``."""
        try:
            self._conn.execute(
                """
                INSERT INTO files (project_id, file_path, last_modified_at,
                                   last_indexed_at, chunk_count, file_hash)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(project_id, file_path) DO UPDATE SET
                    last_modified_at = excluded.last_modified_at,
                    last_indexed_at = excluded.last_indexed_at,
                    chunk_count = excluded.chunk_count,
                    file_hash = excluded.file_hash
                """,
                (
                    file.project_id,
                    file.file_path,
                    to_db_time(file.last_modified_at),
                    to_db_time(file.last_indexed_at),
                    file.chunk_count,
                    file.file_hash,
                ),
            )
        except sqlite3.IntegrityError:
            self._conn.rollback()
            raise NotFoundError(f"project not found: id={file.project_id}") from None
        self._conn.commit()
        return self.get_file(file.project_id, file.file_path)

    def get_file(self, project_id: int, file_path: str) -> File:
        row = self._conn.execute(
            _FILE_SELECT + " WHERE project_id = ? AND file_path = ?",
            (project_id, file_path),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"file not found: {file_path}")
        return _row_to_file(row)

    def list_files(self, project_id: int) -> list[File]:
        rows = self._conn.execute(
            _FILE_SELECT + " WHERE project_id = ? ORDER BY file_path", (project_id,)
        ).fetchall()
        return [_row_to_file(r) for r in rows]

    def delete_file(self, project_id: int, file_path: str) -> None:
        cur = self._conn.execute(
            "DELETE FROM files WHERE project_id = ? AND file_path = ?",
            (project_id, file_path),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"file not found: {file_path}")

    def delete_project_files(self, project_id: int) -> int:
        """Delete every file row of a project. Returns the number removed."""
        cur = self._conn.execute("DELETE FROM files WHERE project_id = ?", (project_id,))
        self._conn.commit()
        return cur.rowcount

    def get_stale_files(self, project_id: int) -> list[File]:
        """Files never indexed, or modified after their last indexing."""
        rows = self._conn.execute(
            _FILE_SELECT
            + """
            WHERE project_id = ?
              AND (last_indexed_at IS NULL OR last_modified_at > last_indexed_at)
            ORDER BY file_path
            """,
            (project_id,),
        ).fetchall()
        return [_row_to_file(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _integrity_to_domain(exc: sqlite3.IntegrityError, project: Project) -> Exception:
    if "UNIQUE" in str(exc):
        return ConflictError(f"project already exists: {project.name}")
    if "FOREIGN KEY" in str(exc):
        return NotFoundError(f"group not found: id={project.group_id}")
    return exc


def _row_to_group(row: sqlite3.Row) -> Group:
    return Group(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        path=row["path"],
        language=row["language"],
        description=row["description"] or "",
        group_id=row["group_id"],
        group_name=row["group_name"] or "",
        chunk_count=row["chunk_count"],
        last_indexed_at=from_db_time(row["last_indexed_at"]),
        last_modified_at=from_db_time(row["last_modified_at"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


def _row_to_file(row: sqlite3.Row) -> File:
    return File(
        id=row["id"],
        project_id=row["project_id"],
        file_path=row["file_path"],
        last_modified_at=from_db_time(row["last_modified_at"]),
        last_indexed_at=from_db_time(row["last_indexed_at"]),
        chunk_count=row["chunk_count"],
        file_hash=row["file_hash"] or "",
    )
