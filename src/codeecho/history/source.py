"""The HistorySource contract consumed by the miner."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterator, Optional

from ..domain.models import CommitRecord


class HistoryWalk:
    """An ordered commit listing whose per-commit changes load lazily.

    The hashes are known up front (``len()``, :attr:`hashes`); iterating
    computes each commit's file deltas only when the consumer asks for the
    next record, so a consumer that stops early never pays for the rest.

    A walk may own resources (a scratch clone of a remote); close it, or use
    it as a context manager, once the records are consumed.
    """

    def __init__(
        self,
        location: str,
        hashes: list[str],
        records: Callable[[], Iterator[CommitRecord]],
        oldest_first: bool = False,
        cleanup: Optional[Callable[[], None]] = None,
    ) -> None:
        self.location = location
        self._hashes = list(hashes)
        self._records = records
        self.oldest_first = oldest_first
        self._cleanup = cleanup
        self._open: list[Iterator[CommitRecord]] = []

    @property
    def hashes(self) -> list[str]:
        return list(self._hashes)

    @property
    def newest(self) -> Optional[str]:
        """Hash of the most recent commit in the walk, or None if empty."""
        if not self._hashes:
            return None
        return self._hashes[-1] if self.oldest_first else self._hashes[0]

    def __len__(self) -> int:
        return len(self._hashes)

    def __bool__(self) -> bool:
        return bool(self._hashes)

    def __iter__(self) -> Iterator[CommitRecord]:
        records = self._records()
        self._open.append(records)
        return records

    def close(self) -> None:
        """Stop open iterations, then release what the walk owns. Idempotent."""
        while self._open:
            records = self._open.pop()
            close = getattr(records, "close", None)
            if close is not None:
                close()
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()

    def __enter__(self) -> HistoryWalk:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class HistorySource(ABC):
    """Reads a repository and produces commit records with per-file deltas."""

    @abstractmethod
    def walk(
        self,
        location: str,
        since_hash: Optional[str] = None,
        oldest_first: bool = False,
    ) -> HistoryWalk:
        """List the commits to ingest.

        Without ``since_hash`` the walk covers all history reachable from
        HEAD; with it, only commits reachable from HEAD but not from
        ``since_hash`` (which is itself excluded). Newest-first unless
        ``oldest_first`` is set, in which case parents precede children.

        Raises:
            InvalidLocationError, RepoOpenError: the repository is unusable.
            HistoryWalkError: the history cannot be read.
            CheckpointNotFoundError: ``since_hash`` is not in the repository.
        """
        ...

    def validate_location(self, location: str) -> None:
        """Raise if ``location`` cannot be walked. Default accepts everything."""
        return None

    def list_commits(self, location: str, since_hash: Optional[str] = None) -> list[CommitRecord]:
        """Materialize a newest-first walk."""
        with self.walk(location, since_hash=since_hash) as walk:
            return list(walk)
