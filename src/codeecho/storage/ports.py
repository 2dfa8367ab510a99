"""Persistence interfaces consumed by the miner and the analyzers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..domain.models import (
    Change,
    ChangeEvent,
    Commit,
    DateRange,
    FileChangeFrequency,
    Project,
)
from ..domain.values import GitHash


class ChangeStore(ABC):
    """Append-only storage for commits and their per-file changes."""

    @abstractmethod
    def create_commit(self, commit: Commit) -> Commit:
        """Persist a commit and return it with ``id`` assigned.

        Raises:
            DuplicateCommitError: the hash is already stored for the project.
        """

    @abstractmethod
    def create_changes_batch(self, changes: Sequence[Change]) -> int:
        """Persist changes whose ``commit_id`` is set; return how many were written."""

    @abstractmethod
    def record_commit(self, commit: Commit, changes: Sequence[Change]) -> Commit:
        """Persist a commit and all its changes in one transaction."""

    @abstractmethod
    def has_commit(self, project_id: int, commit_hash: GitHash) -> bool:
        ...

    @abstractmethod
    def changes_for_project(self, project_id: int) -> list[Change]:
        ...

    @abstractmethod
    def change_frequencies(
        self, project_id: int, limit: Optional[int] = None
    ) -> list[FileChangeFrequency]:
        """Per-path aggregates in hotspot order, truncated when ``limit > 0``."""

    @abstractmethod
    def change_events(
        self, project_id: int, date_range: Optional[DateRange] = None
    ) -> list[ChangeEvent]:
        """Changes joined with their commit, optionally within ``date_range``."""

    @abstractmethod
    def commit_count(self, project_id: int) -> int:
        ...

    def file_count(self, project_id: int) -> int:
        """Distinct paths across all of the project's changes."""
        return len({c.file_path for c in self.changes_for_project(project_id)})

    def change_count(self, project_id: int) -> int:
        return len(self.changes_for_project(project_id))


class ProjectStore(ABC):
    """Storage for projects and their ingestion checkpoint."""

    @abstractmethod
    def get_by_name(self, name: str) -> Optional[Project]:
        ...

    @abstractmethod
    def get_by_id(self, project_id: int) -> Optional[Project]:
        ...

    @abstractmethod
    def create(self, project: Project) -> Project:
        """Persist a new project and return it with ``id`` assigned."""

    @abstractmethod
    def update(self, project: Project) -> Project:
        """Write back mutable fields (``repo_path`` and the checkpoint)."""

    @abstractmethod
    def list_all(self) -> list[Project]:
        ...
