"""SQLite implementations of ChangeStore and ProjectStore."""

from __future__ import annotations

import sqlite3
from typing import Optional, Sequence

from ..domain.models import (
    Change,
    ChangeEvent,
    Commit,
    DateRange,
    FileChangeFrequency,
    Project,
    format_timestamp,
    parse_timestamp,
)
from ..domain.values import FilePath, GitHash
from ..exceptions import DuplicateCommitError, ProjectNotFound, StoreError
from ..logging_config import get_logger
from .database import CodeEchoDB
from .ports import ChangeStore, ProjectStore

logger = get_logger(__name__)


class SQLiteProjectStore(ProjectStore):
    """ProjectStore over the ``projects`` table."""

    def __init__(self, db: CodeEchoDB):
        self.db = db

    def get_by_name(self, name: str) -> Optional[Project]:
        with self.db.reading() as c:
            row = c.execute("SELECT * FROM projects WHERE name = ?", (name,)).fetchone()
        return _project(row) if row else None

    def get_by_id(self, project_id: int) -> Optional[Project]:
        with self.db.reading() as c:
            row = c.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return _project(row) if row else None

    def require(self, project_id: int) -> Project:
        """Like :meth:`get_by_id` but raises :class:`ProjectNotFound`."""
        project = self.get_by_id(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def create(self, project: Project) -> Project:
        with self.db.transaction() as c:
            try:
                cur = c.execute(
                    """
                    INSERT INTO projects (name, repo_path, last_analyzed_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        project.name,
                        project.repo_path,
                        _hash_text(project.last_analyzed_hash),
                        format_timestamp(project.created_at),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise StoreError(
                    f"Project already exists: {project.name}", details={"error": str(e)}
                )
        project.id = cur.lastrowid
        logger.debug("Created project %s (id=%s)", project.name, project.id)
        return project

    def update(self, project: Project) -> Project:
        if project.id is None:
            raise ProjectNotFound(project.name)
        with self.db.transaction() as c:
            cur = c.execute(
                "UPDATE projects SET repo_path = ?, last_analyzed_hash = ? WHERE id = ?",
                (project.repo_path, _hash_text(project.last_analyzed_hash), project.id),
            )
            if cur.rowcount == 0:
                raise ProjectNotFound(project.id)
        return project

    def list_all(self) -> list[Project]:
        with self.db.reading() as c:
            rows = c.execute("SELECT * FROM projects ORDER BY name").fetchall()
        return [_project(r) for r in rows]

    def delete(self, project_id: int) -> None:
        """Delete a project; its commits and changes go with it."""
        with self.db.transaction() as c:
            cur = c.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            if cur.rowcount == 0:
                raise ProjectNotFound(project_id)


class SQLiteChangeStore(ChangeStore):
    """ChangeStore over the ``commits`` and ``changes`` tables."""

    def __init__(self, db: CodeEchoDB):
        self.db = db

    # ── writes ────────────────────────────────────────────────────

    def create_commit(self, commit: Commit) -> Commit:
        with self.db.transaction() as c:
            return self._insert_commit(c, commit)

    def create_changes_batch(self, changes: Sequence[Change]) -> int:
        with self.db.transaction() as c:
            return self._insert_changes(c, changes)

    def record_commit(self, commit: Commit, changes: Sequence[Change]) -> Commit:
        with self.db.transaction() as c:
            stored = self._insert_commit(c, commit)
            self._insert_changes(
                c,
                [
                    Change(ch.file_path, ch.lines_added, ch.lines_deleted, commit_id=stored.id)
                    for ch in changes
                ],
            )
        return stored

    def _insert_commit(self, c: sqlite3.Connection, commit: Commit) -> Commit:
        try:
            cur = c.execute(
                """
                INSERT INTO commits (project_id, hash, author, timestamp, message, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    commit.project_id,
                    commit.hash.value.lower(),
                    commit.author,
                    format_timestamp(commit.timestamp),
                    commit.message,
                    format_timestamp(commit.created_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise DuplicateCommitError(commit.project_id, commit.hash.value)
            raise ProjectNotFound(commit.project_id)
        return Commit(
            project_id=commit.project_id,
            hash=commit.hash,
            author=commit.author,
            timestamp=commit.timestamp,
            message=commit.message,
            id=cur.lastrowid,
            created_at=commit.created_at,
        )

    @staticmethod
    def _insert_changes(c: sqlite3.Connection, changes: Sequence[Change]) -> int:
        rows = []
        for ch in changes:
            if ch.commit_id is None:
                raise StoreError("Change has no commit_id", details={"path": ch.file_path.value})
            rows.append((ch.commit_id, ch.file_path.value, ch.lines_added, ch.lines_deleted))
        c.executemany(
            """
            INSERT INTO changes (commit_id, file_path, lines_added, lines_deleted)
            VALUES (?, ?, ?, ?)
            """,
            rows,
        )
        return len(rows)

    # ── reads ─────────────────────────────────────────────────────

    def has_commit(self, project_id: int, commit_hash: GitHash) -> bool:
        with self.db.reading() as c:
            row = c.execute(
                "SELECT 1 FROM commits WHERE project_id = ? AND hash = ?",
                (project_id, commit_hash.value.lower()),
            ).fetchone()
        return row is not None

    def changes_for_project(self, project_id: int) -> list[Change]:
        with self.db.reading() as c:
            rows = c.execute(
                """
                SELECT ch.id, ch.commit_id, ch.file_path, ch.lines_added, ch.lines_deleted
                FROM changes ch
                JOIN commits co ON co.id = ch.commit_id
                WHERE co.project_id = ?
                ORDER BY co.timestamp, ch.id
                """,
                (project_id,),
            ).fetchall()
        return [
            Change(
                file_path=FilePath(r["file_path"]),
                lines_added=r["lines_added"],
                lines_deleted=r["lines_deleted"],
                commit_id=r["commit_id"],
                id=r["id"],
            )
            for r in rows
        ]

    def change_frequencies(
        self, project_id: int, limit: Optional[int] = None
    ) -> list[FileChangeFrequency]:
        sql = """
            SELECT ch.file_path,
                   COUNT(DISTINCT ch.commit_id) AS change_count,
                   SUM(ch.lines_added)          AS total_added,
                   SUM(ch.lines_deleted)        AS total_deleted
            FROM changes ch
            JOIN commits co ON co.id = ch.commit_id
            WHERE co.project_id = ?
            GROUP BY ch.file_path
            ORDER BY change_count DESC,
                     (SUM(ch.lines_added) + SUM(ch.lines_deleted)) DESC,
                     ch.file_path ASC
        """
        params: tuple = (project_id,)
        if limit is not None and limit > 0:
            sql += " LIMIT ?"
            params = (project_id, limit)
        with self.db.reading() as c:
            rows = c.execute(sql, params).fetchall()
        return [
            FileChangeFrequency(
                file_path=r["file_path"],
                change_count=r["change_count"],
                total_added=r["total_added"] or 0,
                total_deleted=r["total_deleted"] or 0,
            )
            for r in rows
        ]

    def change_events(
        self, project_id: int, date_range: Optional[DateRange] = None
    ) -> list[ChangeEvent]:
        sql = """
            SELECT co.id AS commit_id, co.hash, co.author, co.timestamp,
                   ch.file_path, ch.lines_added, ch.lines_deleted
            FROM changes ch
            JOIN commits co ON co.id = ch.commit_id
            WHERE co.project_id = ?
        """
        params: list = [project_id]
        if date_range is not None and date_range.start is not None:
            sql += " AND co.timestamp >= ?"
            params.append(format_timestamp(date_range.start))
        if date_range is not None and date_range.end is not None:
            sql += " AND co.timestamp <= ?"
            params.append(format_timestamp(date_range.end))
        sql += " ORDER BY co.timestamp, co.id, ch.id"

        with self.db.reading() as c:
            rows = c.execute(sql, params).fetchall()
        return [
            ChangeEvent(
                commit_id=r["commit_id"],
                commit_hash=r["hash"],
                author=r["author"],
                timestamp=parse_timestamp(r["timestamp"]),
                file_path=r["file_path"],
                lines_added=r["lines_added"],
                lines_deleted=r["lines_deleted"],
            )
            for r in rows
        ]

    def commit_count(self, project_id: int) -> int:
        with self.db.reading() as c:
            row = c.execute(
                "SELECT COUNT(*) AS n FROM commits WHERE project_id = ?", (project_id,)
            ).fetchone()
        return int(row["n"])

    def file_count(self, project_id: int) -> int:
        with self.db.reading() as c:
            row = c.execute(
                """
                SELECT COUNT(DISTINCT ch.file_path) AS n
                FROM changes ch
                JOIN commits co ON co.id = ch.commit_id
                WHERE co.project_id = ?
                """,
                (project_id,),
            ).fetchone()
        return int(row["n"])

    def change_count(self, project_id: int) -> int:
        with self.db.reading() as c:
            row = c.execute(
                """
                SELECT COUNT(*) AS n
                FROM changes ch
                JOIN commits co ON co.id = ch.commit_id
                WHERE co.project_id = ?
                """,
                (project_id,),
            ).fetchone()
        return int(row["n"])


# ── row mapping ───────────────────────────────────────────────────────


def _hash_text(value: Optional[GitHash]) -> Optional[str]:
    return value.value.lower() if value is not None else None


def _project(row: sqlite3.Row) -> Project:
    checkpoint = row["last_analyzed_hash"]
    return Project(
        id=row["id"],
        name=row["name"],
        repo_path=row["repo_path"],
        last_analyzed_hash=GitHash(checkpoint) if checkpoint else None,
        created_at=parse_timestamp(row["created_at"]),
    )
