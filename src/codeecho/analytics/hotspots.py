"""Hotspot ranking: files ordered by how often they change."""

from __future__ import annotations

from typing import Optional

from ..domain.models import FileChangeFrequency
from ..logging_config import get_logger
from ..storage.ports import ChangeStore

logger = get_logger(__name__)


class HotspotAnalyzer:
    """Ranks a project's files by change frequency.

    Order: distinct commits touching the file (desc), then total lines
    added plus deleted (desc), then path. Read-only; safe to call while an
    ingestion is writing.
    """

    def __init__(self, changes: ChangeStore):
        self.changes = changes

    def rank(self, project_id: int, limit: Optional[int] = None) -> list[FileChangeFrequency]:
        """Return up to ``limit`` hotspots; ``None`` or ``limit <= 0`` returns all."""
        rows = self.changes.change_frequencies(project_id, limit)
        rows.sort(key=lambda r: (-r.change_count, -r.total_lines, r.file_path))
        if limit is not None and limit > 0:
            rows = rows[:limit]
        logger.debug("Ranked %d hotspot(s) for project %s", len(rows), project_id)
        return rows
