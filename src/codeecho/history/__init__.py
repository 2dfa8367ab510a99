"""Reading commit history out of version-controlled repositories."""

from .git_source import GitHistorySource
from .locations import Credentials, RepositoryLocation, parse_location, sanitize
from .source import HistorySource, HistoryWalk

__all__ = [
    "HistorySource",
    "HistoryWalk",
    "GitHistorySource",
    "RepositoryLocation",
    "Credentials",
    "parse_location",
    "sanitize",
]
