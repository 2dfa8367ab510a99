"""Domain values, entities and derived metric records."""

from .models import (
    Change,
    ChangeEvent,
    Commit,
    CommitRecord,
    DateRange,
    FileChangeFrequency,
    FileDelta,
    IngestionMode,
    IngestionOutcome,
    IngestionResult,
    IngestionStatus,
    Project,
    TemporalCoupling,
    format_timestamp,
    parse_timestamp,
)
from .values import FilePath, GitHash

__all__ = [
    "GitHash",
    "FilePath",
    "Project",
    "Commit",
    "Change",
    "ChangeEvent",
    "CommitRecord",
    "FileDelta",
    "FileChangeFrequency",
    "TemporalCoupling",
    "DateRange",
    "IngestionMode",
    "IngestionOutcome",
    "IngestionResult",
    "IngestionStatus",
    "parse_timestamp",
    "format_timestamp",
]
