"""Knowledge ownership and bus factor per file."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Optional

from ..domain.models import ChangeEvent, DateRange
from ..logging_config import get_logger
from ..storage.ports import ChangeStore
from .models import (
    AuthorContribution,
    AuthorShare,
    BusFactorEntry,
    BusFactorReport,
    BusFactorSummary,
    FileOwnership,
)

logger = get_logger(__name__)

RISK_LEVELS = ("high", "medium", "low")
_TOP_AUTHORS = 5


def ownership_risk(percentage: float) -> str:
    """Risk from the primary owner's share of a file's changed lines."""
    if percentage > 90:
        return "critical"
    if percentage > 70:
        return "high"
    if percentage > 50:
        return "medium"
    return "low"


def bus_factor_risk(bus_factor: int) -> str:
    if bus_factor == 1:
        return "high"
    if bus_factor == 2:
        return "medium"
    return "low"


def compute_bus_factor(shares: list[AuthorShare]) -> int:
    """Number of leading authors whose commit shares reach 50%.

    ``shares`` must already be ordered by share, largest first.
    """
    cumulative = 0.0
    count = 0
    for share in shares:
        cumulative += share.ownership_percent
        count += 1
        if cumulative >= 50.0:
            break
    return count


class _AuthorStats:
    __slots__ = ("commits", "lines", "last")

    def __init__(self) -> None:
        self.commits: set[int] = set()
        self.lines = 0
        self.last: Optional[datetime] = None

    def add(self, event: ChangeEvent) -> None:
        self.commits.add(event.commit_id)
        self.lines += event.total_lines
        if self.last is None or event.timestamp > self.last:
            self.last = event.timestamp


def _by_file_and_author(
    events: list[ChangeEvent],
) -> dict[str, dict[str, _AuthorStats]]:
    grouped: dict[str, dict[str, _AuthorStats]] = defaultdict(lambda: defaultdict(_AuthorStats))
    for event in events:
        grouped[event.file_path][event.author].add(event)
    return grouped


class OwnershipAnalyzer:
    """Who knows which file, and how exposed each file is to losing them."""

    def __init__(self, changes: ChangeStore):
        self.changes = changes

    def file_ownership(self, project_id: int) -> list[FileOwnership]:
        """Per-file contributors ranked by lines changed, riskiest files first.

        Files whose changes carry no line counts (e.g. only empty files)
        fall back to commit shares.
        """
        results: list[FileOwnership] = []
        grouped = _by_file_and_author(self.changes.change_events(project_id))

        for path, authors in grouped.items():
            total_lines = sum(s.lines for s in authors.values())
            total_commits = sum(len(s.commits) for s in authors.values())
            contributions = []
            for author, stats in authors.items():
                if total_lines:
                    pct = stats.lines / total_lines * 100
                else:
                    pct = len(stats.commits) / total_commits * 100
                contributions.append(
                    AuthorContribution(
                        author=author,
                        commits=len(stats.commits),
                        lines_changed=stats.lines,
                        percentage=pct,
                        last_modified=stats.last,
                    )
                )
            contributions.sort(key=lambda c: (-c.percentage, -c.commits, c.author))
            owner = contributions[0]
            results.append(
                FileOwnership(
                    file_path=path,
                    primary_owner=owner.author,
                    ownership_percentage=owner.percentage,
                    total_contributors=len(contributions),
                    risk_level=ownership_risk(owner.percentage),
                    contributors=contributions,
                )
            )

        results.sort(key=lambda f: (-f.ownership_percentage, f.file_path))
        return results

    def bus_factor(
        self,
        project_id: int,
        date_range: Optional[DateRange] = None,
        path_prefix: Optional[str] = None,
        risk_level: Optional[str] = None,
    ) -> BusFactorReport:
        """Bus factor per file with a summary over the files reported.

        Args:
            date_range: only count commits inside this window
            path_prefix: only report files under this path
            risk_level: only report files at this level; ``"all"`` or None
                reports everything
        """
        if risk_level in (None, "", "all"):
            level_filter = None
        else:
            level_filter = risk_level.lower()
            if level_filter not in RISK_LEVELS:
                raise ValueError(f"risk_level must be one of {', '.join(RISK_LEVELS)} or 'all'")
        prefix = path_prefix.strip("/") if path_prefix else None

        events = self.changes.change_events(project_id, date_range)
        if prefix:
            events = [
                e for e in events if e.file_path == prefix or e.file_path.startswith(prefix + "/")
            ]

        entries: list[BusFactorEntry] = []
        summary = BusFactorSummary()
        total_bus_factor = 0

        for path, authors in _by_file_and_author(events).items():
            total_commits = len(set().union(*(s.commits for s in authors.values())))
            shares = sorted(
                (
                    AuthorShare(
                        author=author,
                        commits=len(stats.commits),
                        ownership_percent=len(stats.commits) / total_commits * 100,
                    )
                    for author, stats in authors.items()
                ),
                key=lambda s: (-s.commits, s.author),
            )
            bf = compute_bus_factor(shares)
            level = bus_factor_risk(bf)
            if level_filter is not None and level != level_filter:
                continue

            if level == "high":
                summary.high_risk_files += 1
            elif level == "medium":
                summary.medium_risk_files += 1
            else:
                summary.low_risk_files += 1
            summary.distribution[bf] = summary.distribution.get(bf, 0) + 1
            total_bus_factor += bf

            last = max((s.last for s in authors.values() if s.last is not None), default=None)
            entries.append(
                BusFactorEntry(
                    file_path=path,
                    bus_factor=bf,
                    risk_level=level,
                    total_commits=total_commits,
                    top_authors=shares[:_TOP_AUTHORS],
                    ownership_distribution=shares,
                    last_modified=last,
                )
            )

        entries.sort(key=lambda e: (e.bus_factor, -e.total_commits, e.file_path))
        summary.total_files = len(entries)
        if entries:
            summary.average_bus_factor = total_bus_factor / len(entries)
        logger.debug(
            "Project %s: bus factor over %d file(s), %d high risk",
            project_id,
            summary.total_files,
            summary.high_risk_files,
        )
        return BusFactorReport(
            project_id=project_id,
            files=entries,
            summary=summary,
            path_prefix=prefix,
            risk_level=level_filter,
        )
