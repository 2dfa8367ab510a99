"""Project-level totals and high-churn snapshots."""

from __future__ import annotations

from collections import defaultdict

from ..exceptions import ProjectNotFound
from ..logging_config import get_logger
from ..storage.ports import ChangeStore, ProjectStore
from .models import ProjectOverview, RiskSnapshot

logger = get_logger(__name__)

_SNAPSHOT_MIN_CHANGES = 5
_SNAPSHOT_LIMIT = 10
_COUPLING_RISK_CHANGES = 15
_MAX_EXTENSION_LENGTH = 10


def snapshot_level(changes: int) -> str:
    if changes > 20:
        return "High"
    if changes > 10:
        return "Medium"
    return "Low"


class OverviewAnalyzer:
    def __init__(self, changes: ChangeStore, projects: ProjectStore):
        self.changes = changes
        self.projects = projects

    def overview(self, project_id: int) -> ProjectOverview:
        """Totals for one project plus its ten heaviest high-churn files.

        ``contributors`` counts authors with at least one recorded change.
        """
        project = self.projects.get_by_id(project_id)
        if project is None:
            raise ProjectNotFound(project_id)

        events = self.changes.change_events(project_id)
        file_commits: dict[str, set[int]] = defaultdict(set)
        file_lines: dict[str, int] = defaultdict(int)
        authors: set[str] = set()
        net = 0
        for e in events:
            file_commits[e.file_path].add(e.commit_id)
            file_lines[e.file_path] += e.total_lines
            authors.add(e.author)
            net += e.lines_added - e.lines_deleted

        churned = [p for p, commits in file_commits.items() if len(commits) > _SNAPSHOT_MIN_CHANGES]
        churned.sort(key=lambda p: (-file_lines[p], p))
        snapshots = [
            RiskSnapshot(
                file_path=p,
                changes=len(file_commits[p]),
                total_lines=file_lines[p],
                level=snapshot_level(len(file_commits[p])),
            )
            for p in churned[:_SNAPSHOT_LIMIT]
        ]

        return ProjectOverview(
            project_id=project_id,
            name=project.name,
            total_files=len(file_commits),
            total_commits=self.changes.commit_count(project_id),
            net_lines=net,
            contributors=len(authors),
            risk_snapshots=snapshots,
            total_hotspots=sum(1 for s in snapshots if s.level == "High"),
            high_coupling_risks=sum(1 for s in snapshots if s.changes > _COUPLING_RISK_CHANGES),
        )

    def file_types(self, project_id: int) -> list[str]:
        """Sorted distinct file extensions seen in the project's changes."""
        extensions = {
            ext
            for ext in (c.file_path.extension for c in self.changes.changes_for_project(project_id))
            if 0 < len(ext) <= _MAX_EXTENSION_LENGTH
        }
        return sorted(extensions)
