"""Exception hierarchy for CodeEcho."""

from .base import CodeEchoError
from .config import ConfigurationError, InvalidConfigError
from .jobs import AlreadyRunning, JobError, NotRunning
from .repository import (
    CheckpointNotFoundError,
    HistoryWalkError,
    InvalidLocationError,
    RepoOpenError,
    RepositoryError,
)
from .store import DuplicateCommitError, ProjectNotFound, StoreError
from .values import InvalidFilePath, InvalidHash

__all__ = [
    "CodeEchoError",
    "InvalidHash",
    "InvalidFilePath",
    "RepositoryError",
    "InvalidLocationError",
    "RepoOpenError",
    "HistoryWalkError",
    "CheckpointNotFoundError",
    "JobError",
    "AlreadyRunning",
    "NotRunning",
    "StoreError",
    "ProjectNotFound",
    "DuplicateCommitError",
    "ConfigurationError",
    "InvalidConfigError",
]
