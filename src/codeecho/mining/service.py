"""Ingestion service: admits jobs, runs them in the background, answers status.

Wires the registry, the miner and the analyzers together. ``start`` admits
a job synchronously (so ``AlreadyRunning`` reaches the caller) and then runs
it on its own thread; ``run`` does the same work on the calling thread.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from ..analytics import (
    AuthorActivityAnalyzer,
    HotspotAnalyzer,
    OverviewAnalyzer,
    OwnershipAnalyzer,
    TemporalCouplingAnalyzer,
)
from ..config import CodeEchoConfig
from ..domain.models import (
    IngestionMode,
    IngestionOutcome,
    IngestionResult,
    IngestionStatus,
    utcnow,
)
from ..exceptions import ProjectNotFound
from ..history.git_source import GitHistorySource
from ..history.source import HistorySource
from ..logging_config import get_logger
from ..storage.database import CodeEchoDB
from ..storage.ports import ChangeStore, ProjectStore
from ..storage.sqlite_store import SQLiteChangeStore, SQLiteProjectStore
from .miner import RepositoryMiner
from .registry import AnalysisJobRegistry

logger = get_logger(__name__)

RunMode = Literal["auto", "full", "incremental"]


@dataclass
class JobAcceptance:
    """Returned by :meth:`AnalysisService.start` once a job is admitted."""

    project_id: int
    mode: str
    accepted_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "mode": self.mode,
            "accepted_at": self.accepted_at.isoformat(),
            "status": "accepted",
        }


@dataclass
class _LastRun:
    outcome: Optional[str] = None
    error: Optional[str] = None
    result: Optional[IngestionResult] = None


class AnalysisService:
    """Front door for ingestion and analytics of all projects."""

    def __init__(
        self,
        source: HistorySource,
        changes: ChangeStore,
        projects: ProjectStore,
        config: Optional[CodeEchoConfig] = None,
        registry: Optional[AnalysisJobRegistry] = None,
    ):
        self.config = config or CodeEchoConfig()
        self.changes = changes
        self.projects = projects
        self.registry = registry or AnalysisJobRegistry()
        self.miner = RepositoryMiner(source, changes, projects, self.registry, self.config)

        self.hotspots = HotspotAnalyzer(changes)
        self.coupling = TemporalCouplingAnalyzer(changes, self.config)
        self.ownership = OwnershipAnalyzer(changes)
        self.author_activity = AuthorActivityAnalyzer(changes)
        self.overviews = OverviewAnalyzer(changes, projects)

        self._lock = threading.Lock()
        self._threads: dict[int, threading.Thread] = {}
        self._last: dict[int, _LastRun] = {}

    @classmethod
    def from_config(cls, config: CodeEchoConfig) -> tuple[AnalysisService, CodeEchoDB]:
        """Build a service over the configured SQLite database and git.

        The caller owns the returned database and must close it.
        """
        db = CodeEchoDB(config.database_path)
        db.connect()
        service = cls(
            GitHistorySource(config),
            SQLiteChangeStore(db),
            SQLiteProjectStore(db),
            config=config,
        )
        return service, db

    # ── projects ──────────────────────────────────────────────────

    def ensure_project(self, name: str, repo_path: str):
        return self.miner.ensure_project(name, repo_path)

    def project_by_name(self, name: str):
        project = self.projects.get_by_name(name)
        if project is None:
            raise ProjectNotFound(name)
        return project

    def _require(self, project_id: int) -> None:
        if self.projects.get_by_id(project_id) is None:
            raise ProjectNotFound(project_id)

    # ── ingestion ─────────────────────────────────────────────────

    def run(self, project_id: int, mode: RunMode = "auto") -> IngestionResult:
        """Ingest on the calling thread, still admitted through the registry."""
        self._require(project_id)
        with self.registry.admit(project_id):
            return self._execute(project_id, mode)

    def start(self, project_id: int, mode: RunMode = "auto") -> JobAcceptance:
        """Admit a job and run it in the background; returns immediately.

        Raises:
            ProjectNotFound: no such project.
            AlreadyRunning: the project already has an admitted job.
        """
        self._require(project_id)
        self.registry.begin(project_id)
        try:
            thread = threading.Thread(
                target=self._background,
                args=(project_id, mode),
                name=f"ingest-{project_id}",
                daemon=True,
            )
            with self._lock:
                self._threads[project_id] = thread
            thread.start()
        except BaseException:
            self.registry.end(project_id)
            raise
        logger.info("Accepted %s ingestion for project %s", mode, project_id)
        return JobAcceptance(project_id=project_id, mode=mode)

    def _background(self, project_id: int, mode: RunMode) -> None:
        try:
            self._execute(project_id, mode)
        except Exception:
            logger.exception("Background ingestion for project %s failed", project_id)
        finally:
            self.registry.end(project_id)
            with self._lock:
                if self._threads.get(project_id) is threading.current_thread():
                    del self._threads[project_id]

    def _execute(self, project_id: int, mode: RunMode) -> IngestionResult:
        try:
            if mode == IngestionMode.FULL.value:
                result = self.miner.ingest_full(project_id)
            elif mode == IngestionMode.INCREMENTAL.value:
                result = self.miner.ingest_incremental(project_id)
            else:
                result = self.miner.ingest(project_id)
        except Exception as e:
            with self._lock:
                self._last[project_id] = _LastRun(IngestionOutcome.FAILED.value, str(e))
            raise
        with self._lock:
            self._last[project_id] = _LastRun(result.outcome.value, None, result)
        return result

    def request_cancel(self, project_id: int) -> None:
        """Ask the project's running job to stop at the next commit boundary."""
        self.registry.request_cancel(project_id)

    def wait(self, project_id: int, timeout: Optional[float] = None) -> bool:
        """Join the project's background job; True once no job is running."""
        with self._lock:
            thread = self._threads.get(project_id)
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return False
            with self._lock:
                if self._threads.get(project_id) is thread:
                    del self._threads[project_id]
        return not self.registry.is_running(project_id)

    def last_result(self, project_id: int) -> Optional[IngestionResult]:
        with self._lock:
            last = self._last.get(project_id)
        return last.result if last else None

    def status(self, project_id: int) -> IngestionStatus:
        status = self.miner.status(project_id)
        with self._lock:
            last = self._last.get(project_id)
        if last is not None:
            status.last_outcome = last.outcome
            status.last_error = last.error
        return status

    # ── analytics ─────────────────────────────────────────────────

    def rank_hotspots(self, project_id: int, limit: Optional[int] = None):
        self._require(project_id)
        return self.hotspots.rank(project_id, limit)

    def couple(self, project_id: int, **kwargs):
        self._require(project_id)
        return self.coupling.couple(project_id, **kwargs)

    def file_ownership(self, project_id: int):
        self._require(project_id)
        return self.ownership.file_ownership(project_id)

    def bus_factor(self, project_id: int, **kwargs):
        self._require(project_id)
        return self.ownership.bus_factor(project_id, **kwargs)

    def authors(self, project_id: int):
        self._require(project_id)
        return self.author_activity.authors(project_id)

    def overview(self, project_id: int):
        return self.overviews.overview(project_id)

    def file_types(self, project_id: int):
        self._require(project_id)
        return self.overviews.file_types(project_id)
