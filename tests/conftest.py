"""Shared test fixtures for CodeEcho: throwaway git repos, stores, fakes."""

import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import pytest

from codeecho.config import CodeEchoConfig
from codeecho.domain.models import Change, Commit, CommitRecord, FileDelta, Project
from codeecho.domain.values import FilePath, GitHash
from codeecho.exceptions import CheckpointNotFoundError
from codeecho.history.source import HistorySource, HistoryWalk
from codeecho.storage.database import CodeEchoDB
from codeecho.storage.sqlite_store import SQLiteChangeStore, SQLiteProjectStore


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure markers."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")
    config.addinivalue_line("markers", "git: test needs the git executable")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given; skip git tests without git."""
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    skip_git = pytest.mark.skip(reason="git executable not available")
    has_git = shutil.which("git") is not None
    for item in items:
        if "slow" in item.keywords and not config.getoption("--run-slow"):
            item.add_marker(skip_slow)
        if "git" in item.keywords and not has_git:
            item.add_marker(skip_git)


# ── git repositories ──────────────────────────────────────────────────


class GitRepo:
    """A scratch repository driven through the git CLI."""

    def __init__(self, path: Path):
        self.path = path
        self._tick = 0
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("config", "user.name", "Test")
        self.git("config", "user.email", "test@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        full_env = dict(os.environ)
        full_env["GIT_TERMINAL_PROMPT"] = "0"
        if env:
            full_env.update(env)
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            env=full_env,
            check=True,
        )
        return result.stdout.strip()

    def commit(
        self,
        files: Dict[str, Optional[str]],
        message: str = "change",
        author: str = "alice",
        date: Optional[str] = None,
    ) -> str:
        """Write (or, for ``None`` values, delete) files and commit them.

        Returns the new commit hash.
        """
        for rel, content in files.items():
            target = self.path / rel
            if content is None:
                self.git("rm", "-q", rel)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            self.git("add", rel)

        self._tick += 1
        when = date or f"2024-01-{self._tick:02d}T12:00:00+00:00"
        env = {
            "GIT_AUTHOR_NAME": author,
            "GIT_AUTHOR_EMAIL": f"{author}@example.com",
            "GIT_AUTHOR_DATE": when,
            "GIT_COMMITTER_NAME": author,
            "GIT_COMMITTER_EMAIL": f"{author}@example.com",
            "GIT_COMMITTER_DATE": when,
        }
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path) -> GitRepo:
    """Empty repository; tests using it must be marked ``git``."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return GitRepo(tmp_path / "repo")


@pytest.fixture
def config(tmp_path) -> CodeEchoConfig:
    return CodeEchoConfig(
        database_path=str(tmp_path / "codeecho.db"),
        clone_root=str(tmp_path / "clones"),
        progress_interval=1,
    )


# ── storage ───────────────────────────────────────────────────────────


@pytest.fixture
def db() -> Iterator[CodeEchoDB]:
    with CodeEchoDB(":memory:") as database:
        yield database


@pytest.fixture
def project_store(db) -> SQLiteProjectStore:
    return SQLiteProjectStore(db)


@pytest.fixture
def change_store(db) -> SQLiteChangeStore:
    return SQLiteChangeStore(db)


# ── scripted history source ───────────────────────────────────────────


def sha(n: int) -> str:
    """Deterministic 40-character hash for commit number ``n``."""
    return f"{n:040x}"


def make_record(
    n: int,
    files: Dict[str, tuple],
    author: str = "alice",
    day: Optional[int] = None,
    parent: Optional[int] = None,
) -> CommitRecord:
    """Build commit ``n`` touching ``files`` ({path: (added, deleted)})."""
    day = day if day is not None else n
    parents: List[str] = []
    if parent is not None:
        parents = [sha(parent)]
    elif n > 1:
        parents = [sha(n - 1)]
    return CommitRecord(
        hash=sha(n),
        author=author,
        timestamp=f"2024-02-{day:02d}T10:00:00+00:00",
        message=f"commit {n}",
        parents=parents,
        changes=[FileDelta(path, added, deleted) for path, (added, deleted) in files.items()],
    )


class FakeHistorySource(HistorySource):
    """In-memory linear history; records are listed oldest first.

    ``on_yield`` runs just before each record is handed to the consumer,
    which lets tests act at commit boundaries (e.g. request cancellation).
    ``closed`` counts walks whose owner released them.
    """

    def __init__(self, records: List[CommitRecord]):
        self.records = list(records)
        self.walks: List[Optional[str]] = []
        self.closed = 0
        self.on_yield = None
        self.fail_with: Optional[Exception] = None

    def walk(self, location, since_hash=None, oldest_first=False) -> HistoryWalk:
        self.walks.append(since_hash)
        if self.fail_with is not None:
            raise self.fail_with
        selected = self.records
        if since_hash:
            hashes = [r.hash for r in self.records]
            if since_hash not in hashes:
                raise CheckpointNotFoundError(location, since_hash)
            selected = self.records[hashes.index(since_hash) + 1 :]
        ordered = selected if oldest_first else list(reversed(selected))

        def records():
            for i, record in enumerate(ordered):
                if self.on_yield is not None:
                    self.on_yield(i, record)
                yield record

        return HistoryWalk(
            location,
            [r.hash for r in ordered],
            records,
            oldest_first=oldest_first,
            cleanup=self._closed,
        )

    def _closed(self) -> None:
        self.closed += 1


@pytest.fixture
def project_id(project_store) -> int:
    project = project_store.create(Project(name="demo", repo_path="/srv/demo"))
    assert project.id is not None
    return project.id


def store_commit(
    change_store: SQLiteChangeStore,
    project_id: int,
    n: int,
    files: Dict[str, tuple],
    author: str = "alice",
    day: int = 1,
) -> None:
    """Persist commit ``n`` with ``files`` ({path: (added, deleted)}) on 2024-03-``day``."""
    change_store.record_commit(
        Commit(
            project_id=project_id,
            hash=GitHash(sha(n)),
            author=author,
            timestamp=datetime(2024, 3, day, 12, 0, tzinfo=timezone.utc),
            message=f"commit {n}",
        ),
        [Change(FilePath(path), added, deleted) for path, (added, deleted) in files.items()],
    )
