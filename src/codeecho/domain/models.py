"""Entities, history records and derived metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional, Union

from ..exceptions import ProjectNotFound
from .values import FilePath, GitHash


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC already. A trailing ``Z`` is accepted.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as a sortable UTC ISO-8601 string (second precision)."""
    return parse_timestamp(dt).replace(microsecond=0).isoformat()


# ── entities ──────────────────────────────────────────────────────────


@dataclass
class Project:
    name: str
    repo_path: str
    id: Optional[int] = None
    last_analyzed_hash: Optional[GitHash] = None  # the ingestion checkpoint
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_analyzed(self) -> bool:
        return self.last_analyzed_hash is not None

    def require_id(self) -> int:
        """The store-assigned id; a project that was never saved is not found."""
        if self.id is None:
            raise ProjectNotFound(self.name)
        return self.id

    def advance_checkpoint(self, commit_hash: GitHash) -> None:
        self.last_analyzed_hash = commit_hash


@dataclass(frozen=True)
class Commit:
    project_id: int
    hash: GitHash
    author: str
    timestamp: datetime
    message: str = ""
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Change:
    file_path: FilePath
    lines_added: int
    lines_deleted: int
    commit_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.lines_added < 0 or self.lines_deleted < 0:
            raise ValueError(
                f"line counts must be non-negative, got +{self.lines_added}/-{self.lines_deleted}"
            )

    @property
    def total_lines(self) -> int:
        return self.lines_added + self.lines_deleted

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_deleted


# ── history records (what a HistorySource yields) ─────────────────────


@dataclass(frozen=True)
class FileDelta:
    path: str  # raw repository path, validated later
    lines_added: int
    lines_deleted: int


@dataclass
class CommitRecord:
    hash: str
    author: str
    timestamp: str  # ISO-8601, author date
    message: str
    parents: list[str] = field(default_factory=list)
    changes: list[FileDelta] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class ChangeEvent:
    """A change joined with the commit it belongs to."""

    commit_id: int
    commit_hash: str
    author: str
    timestamp: datetime
    file_path: str
    lines_added: int
    lines_deleted: int

    @property
    def total_lines(self) -> int:
        return self.lines_added + self.lines_deleted


# ── derived metrics ───────────────────────────────────────────────────


@dataclass
class FileChangeFrequency:
    file_path: str
    change_count: int  # distinct commits touching the file
    total_added: int
    total_deleted: int

    @property
    def total_lines(self) -> int:
        return self.total_added + self.total_deleted


@dataclass
class TemporalCoupling:
    file_a: str  # file_a < file_b
    file_b: str
    shared_commits: int
    total_commits_a: int
    total_commits_b: int
    coupling_score: float
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive commit-timestamp window; either bound may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"date range start {self.start} is after end {self.end}")

    @classmethod
    def from_dates(
        cls,
        start: Union[date, str, None] = None,
        end: Union[date, str, None] = None,
    ) -> DateRange:
        """Build a range covering whole days: ``start`` 00:00:00 to ``end`` 23:59:59 UTC."""
        start_dt = _day_bound(start, time.min) if start is not None else None
        end_dt = _day_bound(end, time(23, 59, 59)) if end is not None else None
        return cls(start_dt, end_dt)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, ts: datetime) -> bool:
        ts = parse_timestamp(ts)
        if self.start is not None and ts < parse_timestamp(self.start):
            return False
        if self.end is not None and ts > parse_timestamp(self.end):
            return False
        return True


def _day_bound(value: Union[date, str], at: time) -> datetime:
    if isinstance(value, datetime):
        return parse_timestamp(value)
    if isinstance(value, str):
        value = date.fromisoformat(value.strip())
    return datetime.combine(value, at, tzinfo=timezone.utc)


# ── ingestion results ─────────────────────────────────────────────────


class IngestionMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class IngestionOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"  # only recorded by the service for background runs


@dataclass
class IngestionResult:
    project_id: int
    mode: IngestionMode
    outcome: IngestionOutcome = IngestionOutcome.COMPLETED
    commit_count: int = 0  # newly persisted
    change_count: int = 0
    file_count: int = 0  # distinct paths across the whole project
    error_count: int = 0
    skipped_count: int = 0  # already stored before this run
    walked_count: int = 0
    last_persisted_hash: Optional[str] = None
    checkpoint: Optional[str] = None  # project checkpoint after the run

    @property
    def cancelled(self) -> bool:
        return self.outcome is IngestionOutcome.CANCELLED

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "mode": self.mode.value,
            "outcome": self.outcome.value,
            "commit_count": self.commit_count,
            "change_count": self.change_count,
            "file_count": self.file_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "walked_count": self.walked_count,
            "last_persisted_hash": self.last_persisted_hash,
            "checkpoint": self.checkpoint,
        }


@dataclass
class IngestionStatus:
    project_id: int
    is_analyzed: bool
    last_commit_hash: Optional[str]
    commit_count: int
    change_count: int
    file_count: int
    running: bool = False
    cancel_requested: bool = False
    last_outcome: Optional[str] = None
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "is_analyzed": self.is_analyzed,
            "last_commit_hash": self.last_commit_hash,
            "commit_count": self.commit_count,
            "change_count": self.change_count,
            "file_count": self.file_count,
            "running": self.running,
            "cancel_requested": self.cancel_requested,
            "last_outcome": self.last_outcome,
            "last_error": self.last_error,
        }
