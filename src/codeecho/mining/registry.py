"""Admission control and cooperative cancellation for ingestion jobs."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator

from ..domain.models import utcnow
from ..exceptions import AlreadyRunning, NotRunning
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class JobTicket:
    """An admitted ingestion job. ``cancel_event`` is its cancellation flag."""

    project_id: int
    admitted_at: datetime = field(default_factory=utcnow)
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()


class AnalysisJobRegistry:
    """Tracks at most one admitted ingestion job per project.

    Thread-safe: a single lock guards the project table and is held only for
    the lookup or mutation itself. Workers poll :meth:`is_cancelled` between
    commits; a cancelled job keeps its slot until :meth:`end` so a second
    worker cannot start while the first is still winding down.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[int, JobTicket] = {}

    def begin(self, project_id: int) -> JobTicket:
        with self._lock:
            if project_id in self._jobs:
                raise AlreadyRunning(project_id)
            ticket = JobTicket(project_id)
            self._jobs[project_id] = ticket
        logger.debug("Admitted ingestion job for project %s", project_id)
        return ticket

    def end(self, project_id: int) -> None:
        with self._lock:
            ticket = self._jobs.pop(project_id, None)
        if ticket is not None:
            logger.debug("Released ingestion job for project %s", project_id)

    def request_cancel(self, project_id: int) -> None:
        with self._lock:
            ticket = self._jobs.get(project_id)
            if ticket is None:
                raise NotRunning(project_id)
            ticket.cancel_event.set()
        logger.info("Cancellation requested for project %s", project_id)

    def is_cancelled(self, project_id: int) -> bool:
        with self._lock:
            ticket = self._jobs.get(project_id)
        return ticket is not None and ticket.cancel_requested

    def is_running(self, project_id: int) -> bool:
        with self._lock:
            return project_id in self._jobs

    def running(self) -> list[int]:
        with self._lock:
            return sorted(self._jobs)

    @contextmanager
    def admit(self, project_id: int) -> Iterator[JobTicket]:
        """``begin`` on entry, ``end`` on exit, whatever happens in between."""
        ticket = self.begin(project_id)
        try:
            yield ticket
        finally:
            self.end(project_id)
