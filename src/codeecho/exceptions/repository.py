"""Repository access errors: bad locations, clone/open failures, walk failures."""

from typing import Optional

from .base import CodeEchoError


class RepositoryError(CodeEchoError):
    """Base class for errors raised while reading a repository."""

    pass


class InvalidLocationError(RepositoryError):
    """Raised when a repository location is malformed or does not exist."""

    def __init__(self, location: str, reason: str):
        super().__init__(
            "Invalid repository location",
            details={"location": location, "reason": reason},
        )
        self.location = location
        self.reason = reason


class RepoOpenError(RepositoryError):
    """Raised when a repository cannot be opened or cloned."""

    def __init__(self, location: str, reason: str, transient: bool = False):
        super().__init__(
            f"Cannot open repository: {location}",
            details={"reason": reason},
        )
        self.location = location
        self.reason = reason
        self.transient = transient


class HistoryWalkError(RepositoryError):
    """Raised when the commit history cannot be read."""

    transient = True

    def __init__(self, location: str, reason: str, commit: Optional[str] = None):
        details = {"location": location, "reason": reason}
        if commit:
            details["commit"] = commit
        super().__init__("Failed to walk repository history", details=details)
        self.location = location
        self.reason = reason
        self.commit = commit


class CheckpointNotFoundError(HistoryWalkError):
    """Raised when an incremental walk starts from a commit the repository lacks.

    Usually means upstream history was rewritten after the last ingestion.
    """

    transient = False

    def __init__(self, location: str, since_hash: str):
        super().__init__(location, "checkpoint commit not found in history", commit=since_hash)
        self.since_hash = since_hash
