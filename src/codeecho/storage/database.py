"""SQLite database holding projects, commits and changes."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import StoreError
from ..logging_config import get_logger

logger = get_logger(__name__)

# Current schema version (bump when tables change).
_SCHEMA_VERSION = 1


class CodeEchoDB:
    """Manages the CodeEcho SQLite database.

    One connection is shared by every thread; ``lock`` serializes access to
    it, so each statement or transaction must run while holding the lock.

    Usage::

        with CodeEchoDB(".codeecho/codeecho.db") as db:
            with db.transaction() as conn:
                conn.execute(...)
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.in_memory = str(path) == ":memory:"
        self.db_path: Path = Path(path)
        self.lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("CodeEchoDB is not connected. Use as context manager or call connect().")
        return self._conn

    # ── lifecycle ─────────────────────────────────────────────────

    def connect(self) -> sqlite3.Connection:
        """Open (or create) the database and run migrations."""
        if self._conn is not None:
            return self._conn
        if not self.in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        target = ":memory:" if self.in_memory else str(self.db_path)
        try:
            conn = sqlite3.connect(target, check_same_thread=False)
            if not self.in_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database: {e}", details={"path": target})
        conn.row_factory = sqlite3.Row
        self._conn = conn
        self._migrate()
        logger.debug("Database connected at %s", target)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> CodeEchoDB:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock for one transaction; commit on success, roll back on error.

        sqlite3 errors surface as :class:`StoreError`.
        """
        with self.lock:
            conn = self.conn
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError(f"Database write failed: {e}")
            except BaseException:
                conn.rollback()
                raise

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock for a read; sqlite3 errors surface as :class:`StoreError`."""
        with self.lock:
            try:
                yield self.conn
            except sqlite3.Error as e:
                raise StoreError(f"Database read failed: {e}")

    # ── migration ─────────────────────────────────────────────────

    def _migrate(self) -> None:
        """Idempotently create / upgrade all tables."""
        with self.transaction() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                )
                """
            )

            row = c.execute("SELECT version FROM schema_version").fetchone()
            if row is None:
                c.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (_SCHEMA_VERSION,),
                )

            # ── projects ─────────────────────────────────────────────
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                    name               TEXT    NOT NULL UNIQUE,
                    repo_path          TEXT    NOT NULL,
                    last_analyzed_hash TEXT,
                    created_at         TEXT    NOT NULL
                )
                """
            )

            # ── commits ──────────────────────────────────────────────
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS commits (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id  INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
                    hash        TEXT    NOT NULL,
                    author      TEXT    NOT NULL,
                    timestamp   TEXT    NOT NULL,
                    message     TEXT    NOT NULL DEFAULT '',
                    created_at  TEXT    NOT NULL,
                    UNIQUE (project_id, hash)
                )
                """
            )

            # ── changes ──────────────────────────────────────────────
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS changes (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    commit_id     INTEGER NOT NULL REFERENCES commits(id) ON DELETE CASCADE,
                    file_path     TEXT    NOT NULL,
                    lines_added   INTEGER NOT NULL DEFAULT 0,
                    lines_deleted INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            c.execute(
                "CREATE INDEX IF NOT EXISTS idx_commits_project_ts "
                "ON commits(project_id, timestamp)"
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_changes_commit ON changes(commit_id)")
            c.execute("CREATE INDEX IF NOT EXISTS idx_changes_path ON changes(file_path)")

    def schema_version(self) -> int:
        with self.reading() as c:
            row = c.execute("SELECT version FROM schema_version").fetchone()
        return int(row["version"]) if row else 0
