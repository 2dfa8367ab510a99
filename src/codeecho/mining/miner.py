"""Repository mining: turn a commit walk into persisted commits and changes.

A run moves through ``admitted -> walking -> persisting -> checkpointed``
and may stop early at any commit boundary when its job is cancelled. Commits
are persisted oldest first, so whatever a run leaves behind is always a
prefix of history and the checkpoint can only point at a commit whose
ancestors were already handled.
"""

from __future__ import annotations

import time
from typing import Iterator, Optional

from ..config import CodeEchoConfig
from ..domain.models import (
    Change,
    Commit,
    CommitRecord,
    IngestionMode,
    IngestionOutcome,
    IngestionResult,
    IngestionStatus,
    Project,
    parse_timestamp,
)
from ..domain.values import FilePath, GitHash
from ..exceptions import (
    CheckpointNotFoundError,
    DuplicateCommitError,
    InvalidFilePath,
    InvalidHash,
    ProjectNotFound,
    StoreError,
)
from ..history.locations import sanitize
from ..history.source import HistorySource
from ..logging_config import get_logger
from ..storage.ports import ChangeStore, ProjectStore
from .registry import AnalysisJobRegistry

logger = get_logger(__name__)


class RepositoryMiner:
    """Ingests a project's history through a HistorySource into a ChangeStore.

    The miner does not admit jobs itself; callers wrap runs in
    :meth:`AnalysisJobRegistry.admit`. It only polls the registry for
    cancellation, so it also works without one.
    """

    def __init__(
        self,
        source: HistorySource,
        changes: ChangeStore,
        projects: ProjectStore,
        registry: Optional[AnalysisJobRegistry] = None,
        config: Optional[CodeEchoConfig] = None,
    ):
        self.source = source
        self.changes = changes
        self.projects = projects
        self.registry = registry
        self.config = config or CodeEchoConfig()

    # ── projects ──────────────────────────────────────────────────

    def ensure_project(self, name: str, repo_path: str) -> Project:
        """Return the project called ``name``, creating it if absent."""
        if not name or not name.strip():
            raise ValueError("project name must not be empty")
        existing = self.projects.get_by_name(name)
        if existing is not None:
            return existing
        project = self.projects.create(Project(name=name, repo_path=repo_path))
        logger.info("Registered project %s -> %s", name, sanitize(repo_path))
        return project

    def _load(self, project_id: int) -> Project:
        project = self.projects.get_by_id(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    # ── ingestion ─────────────────────────────────────────────────

    def ingest(self, project_id: int, location: Optional[str] = None) -> IngestionResult:
        """Incremental when the project has a checkpoint, full otherwise."""
        project = self._load(project_id)
        if project.is_analyzed:
            return self.ingest_incremental(project_id, location)
        return self.ingest_full(project_id, location)

    def ingest_full(self, project_id: int, location: Optional[str] = None) -> IngestionResult:
        project = self._load(project_id)
        return self._run(project, IngestionMode.FULL, location or project.repo_path, None)

    def ingest_incremental(
        self,
        project_id: int,
        location: Optional[str] = None,
        since_hash: Optional[str] = None,
    ) -> IngestionResult:
        project = self._load(project_id)
        since = since_hash
        if since is None and project.last_analyzed_hash is not None:
            since = project.last_analyzed_hash.value
        if since is not None:
            since = GitHash(since).value.lower()
        return self._run(project, IngestionMode.INCREMENTAL, location or project.repo_path, since)

    def _cancelled(self, project_id: int) -> bool:
        return self.registry is not None and self.registry.is_cancelled(project_id)

    def _run(
        self,
        project: Project,
        mode: IngestionMode,
        location: str,
        since: Optional[str],
    ) -> IngestionResult:
        project_id = project.require_id()
        result = IngestionResult(project_id=project_id, mode=mode)
        checkpoint_before = project.last_analyzed_hash

        if self._cancelled(project_id):
            logger.info("Project %s: cancelled before walking", project.name)
            return self._finish(project, result, IngestionOutcome.CANCELLED, None)

        logger.info(
            "Project %s: walking %s (%s%s)",
            project.name,
            sanitize(location),
            mode.value,
            f" since {since[:7]}" if since else "",
        )
        try:
            walk = self.source.walk(location, since_hash=since, oldest_first=True)
        except CheckpointNotFoundError:
            if since is None or self.config.on_missing_checkpoint != "full":
                raise
            logger.warning(
                "Project %s: checkpoint %s is no longer in history, falling back to full ingestion",
                project.name,
                since[:7],
            )
            walk = self.source.walk(location, since_hash=None, oldest_first=True)
        result.walked_count = len(walk)

        # last_stored: newest commit now in the store.
        # resume_point: newest commit before the first failed write; the
        # checkpoint never moves past it so later runs retry that commit.
        last_stored: Optional[GitHash] = None
        resume_point: Optional[GitHash] = None
        write_failed = False
        cancelled = False
        started = time.monotonic()
        interval = self.config.progress_interval

        with walk:
            records: Iterator[CommitRecord] = iter(walk)
            while True:
                if self._cancelled(project_id):
                    cancelled = True
                    logger.info(
                        "Project %s: cancelled after %d of %d commit(s)",
                        project.name,
                        result.commit_count + result.skipped_count + result.error_count,
                        result.walked_count,
                    )
                    break
                try:
                    record = next(records)
                except StopIteration:
                    break

                try:
                    stored = self._persist(project_id, record, result)
                except StoreError as e:
                    result.error_count += 1
                    write_failed = True
                    stored = None
                    logger.warning("Commit %s: store write failed: %s", record.hash[:7], e)

                if stored is not None:
                    last_stored = stored
                    if not write_failed:
                        resume_point = stored

                done = result.commit_count + result.skipped_count + result.error_count
                if done % interval == 0:
                    logger.info(
                        "Project %s: %d/%d commits processed (%.1fs)",
                        project.name,
                        done,
                        result.walked_count,
                        time.monotonic() - started,
                    )

        if cancelled:
            outcome = IngestionOutcome.CANCELLED
            # a re-run that only skipped stored commits leaves the checkpoint alone
            new_checkpoint = resume_point if result.commit_count else None
        else:
            outcome = IngestionOutcome.COMPLETED
            new_checkpoint = resume_point

        if write_failed:
            logger.warning(
                "Project %s: checkpoint held at %s so failed writes are retried next run",
                project.name,
                resume_point.short if resume_point else "its previous position",
            )
        if new_checkpoint is not None and new_checkpoint != checkpoint_before:
            project.advance_checkpoint(new_checkpoint)
            self.projects.update(project)
            logger.info("Project %s: checkpoint -> %s", project.name, new_checkpoint.short)

        return self._finish(project, result, outcome, last_stored)

    def _persist(
        self, project_id: int, record: CommitRecord, result: IngestionResult
    ) -> Optional[GitHash]:
        """Store one commit; return its hash if it is now in the store.

        Malformed records are counted and dropped. Store write failures
        propagate so the caller can hold the checkpoint back.
        """
        try:
            commit_hash = GitHash(record.hash)
            timestamp = parse_timestamp(record.timestamp)
        except (InvalidHash, ValueError) as e:
            result.error_count += 1
            logger.warning("Skipping commit %r: %s", record.hash, e)
            return None

        if self.changes.has_commit(project_id, commit_hash):
            result.skipped_count += 1
            return commit_hash

        changes: list[Change] = []
        for delta in record.changes:
            try:
                changes.append(
                    Change(FilePath(delta.path), delta.lines_added, delta.lines_deleted)
                )
            except (InvalidFilePath, ValueError) as e:
                logger.warning("Commit %s: skipping path %r: %s", commit_hash.short, delta.path, e)

        commit = Commit(
            project_id=project_id,
            hash=commit_hash,
            author=record.author,
            timestamp=timestamp,
            message=record.message,
        )
        try:
            self.changes.record_commit(commit, changes)
        except DuplicateCommitError:
            result.skipped_count += 1
            return commit_hash

        result.commit_count += 1
        result.change_count += len(changes)
        return commit_hash

    def _finish(
        self,
        project: Project,
        result: IngestionResult,
        outcome: IngestionOutcome,
        last_stored: Optional[GitHash],
    ) -> IngestionResult:
        project_id = project.require_id()
        result.outcome = outcome
        result.last_persisted_hash = last_stored.value if last_stored else None
        result.checkpoint = (
            project.last_analyzed_hash.value if project.last_analyzed_hash else None
        )
        result.file_count = self.changes.file_count(project_id)
        logger.info(
            "Project %s: %s %s run, %d new commit(s), %d change(s), %d skipped, %d error(s)",
            project.name,
            outcome.value,
            result.mode.value,
            result.commit_count,
            result.change_count,
            result.skipped_count,
            result.error_count,
        )
        return result

    # ── status ────────────────────────────────────────────────────

    def status(self, project_id: int) -> IngestionStatus:
        project = self._load(project_id)
        running = self.registry is not None and self.registry.is_running(project_id)
        return IngestionStatus(
            project_id=project_id,
            is_analyzed=project.is_analyzed,
            last_commit_hash=(
                project.last_analyzed_hash.value if project.last_analyzed_hash else None
            ),
            commit_count=self.changes.commit_count(project_id),
            change_count=self.changes.change_count(project_id),
            file_count=self.changes.file_count(project_id),
            running=running,
            cancel_requested=running and self._cancelled(project_id),
        )
