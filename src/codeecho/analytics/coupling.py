"""Temporal coupling: which files tend to change in the same commits."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from itertools import combinations
from typing import Iterable, Optional, Union

from ..config import CodeEchoConfig
from ..domain.models import DateRange, TemporalCoupling
from ..domain.values import FilePath
from ..logging_config import get_logger
from ..storage.ports import ChangeStore

logger = get_logger(__name__)

FileTypes = Union[str, Iterable[str], None]


def parse_file_types(file_types: FileTypes) -> set[str]:
    """Normalize an extension allow-list.

    Accepts ``"py,go"`` or an iterable; dots, whitespace and case are
    ignored. An empty result means no filtering.
    """
    if file_types is None:
        return set()
    items = file_types.split(",") if isinstance(file_types, str) else list(file_types)
    return {t.strip().lstrip(".").lower() for t in items if t and t.strip().lstrip(".")}


class TemporalCouplingAnalyzer:
    """Counts co-changing file pairs from the stored change events.

    For every unordered pair the score is
    ``shared_commits / min(total_commits_a, total_commits_b)``, where totals
    count distinct commits touching each file within the same filtered set.
    """

    def __init__(self, changes: ChangeStore, config: Optional[CodeEchoConfig] = None):
        self.changes = changes
        self.config = config or CodeEchoConfig()

    def couple(
        self,
        project_id: int,
        limit: Optional[int] = None,
        date_range: Optional[DateRange] = None,
        min_shared_commits: Optional[int] = None,
        min_coupling_score: Optional[float] = None,
        file_types: FileTypes = None,
        max_files_per_commit: Optional[int] = None,
    ) -> list[TemporalCoupling]:
        """Return coupled pairs, strongest first.

        Args:
            limit: pairs to return; unset or < 1 means the configured default,
                and values above the configured maximum are clamped
            date_range: inclusive commit-timestamp window
            min_shared_commits: unset or < 1 means the configured default
            min_coupling_score: pairs scoring below it are dropped (default 0)
            file_types: extension allow-list, e.g. ``"py,go"``
            max_files_per_commit: ignore commits touching more files than this
        """
        limit = self._limit(limit)
        if min_shared_commits is None or min_shared_commits < 1:
            min_shared_commits = self.config.coupling_min_shared_commits
        if min_coupling_score is None:
            min_coupling_score = 0.0
        extensions = parse_file_types(file_types)

        commit_files: dict[int, set[str]] = defaultdict(set)
        commit_times: dict[int, datetime] = {}
        for event in self.changes.change_events(project_id, date_range):
            if extensions and FilePath(event.file_path).extension not in extensions:
                continue
            commit_files[event.commit_id].add(event.file_path)
            commit_times[event.commit_id] = event.timestamp

        file_totals: dict[str, int] = defaultdict(int)
        pair_counts: dict[tuple[str, str], int] = defaultdict(int)
        pair_last: dict[tuple[str, str], datetime] = {}

        for commit_id, files in commit_files.items():
            if max_files_per_commit and len(files) > max_files_per_commit:
                continue
            for f in files:
                file_totals[f] += 1
            ts = commit_times[commit_id]
            for pair in combinations(sorted(files), 2):
                pair_counts[pair] += 1
                if pair not in pair_last or ts > pair_last[pair]:
                    pair_last[pair] = ts

        results: list[TemporalCoupling] = []
        for (a, b), shared in pair_counts.items():
            if shared < min_shared_commits:
                continue
            total_a = file_totals[a]
            total_b = file_totals[b]
            score = shared / min(total_a, total_b)
            if score < min_coupling_score:
                continue
            results.append(
                TemporalCoupling(
                    file_a=a,
                    file_b=b,
                    shared_commits=shared,
                    total_commits_a=total_a,
                    total_commits_b=total_b,
                    coupling_score=score,
                    last_modified=pair_last.get((a, b)),
                )
            )

        results.sort(key=lambda c: (-c.coupling_score, -c.shared_commits, c.file_a, c.file_b))
        logger.debug(
            "Project %s: %d coupled pair(s) from %d commit(s)",
            project_id,
            len(results),
            len(commit_files),
        )
        return results[:limit]

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None or limit < 1:
            return self.config.coupling_default_limit
        return min(limit, self.config.coupling_max_limit)
