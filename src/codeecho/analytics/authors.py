"""Per-author activity and concentration."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Optional

from ..logging_config import get_logger
from ..storage.ports import ChangeStore
from .models import AuthorActivity

logger = get_logger(__name__)

_COMMIT_WEIGHT = 0.4
_FILE_WEIGHT = 0.6
_MAX_HOTSPOTS = 20


def activity_score(commits: int, files_touched: int) -> float:
    return commits * _COMMIT_WEIGHT + files_touched * _FILE_WEIGHT


def hotspot_count(risk_score: float) -> int:
    return min(_MAX_HOTSPOTS, int(risk_score / 10))


class AuthorActivityAnalyzer:
    def __init__(self, changes: ChangeStore):
        self.changes = changes

    def authors(self, project_id: int) -> list[AuthorActivity]:
        """Authors of the project's changes, most commits first."""
        commits: dict[str, set[int]] = defaultdict(set)
        files: dict[str, set[str]] = defaultdict(set)
        added: dict[str, int] = defaultdict(int)
        deleted: dict[str, int] = defaultdict(int)
        last: dict[str, Optional[datetime]] = {}

        for event in self.changes.change_events(project_id):
            a = event.author
            commits[a].add(event.commit_id)
            files[a].add(event.file_path)
            added[a] += event.lines_added
            deleted[a] += event.lines_deleted
            prev = last.get(a)
            if prev is None or event.timestamp > prev:
                last[a] = event.timestamp

        results = []
        for author in commits:
            score = activity_score(len(commits[author]), len(files[author]))
            results.append(
                AuthorActivity(
                    author=author,
                    files_touched=len(files[author]),
                    total_commits=len(commits[author]),
                    lines_added=added[author],
                    lines_deleted=deleted[author],
                    last_activity=last.get(author),
                    risk_score=score,
                    hotspots=hotspot_count(score),
                )
            )
        results.sort(key=lambda r: (-r.total_commits, r.author))
        return results
