"""Tests for HotspotAnalyzer ranking."""

from datetime import datetime, timezone

import pytest
from conftest import sha, store_commit

from codeecho.analytics.hotspots import HotspotAnalyzer
from codeecho.domain.models import Change, Commit
from codeecho.domain.values import FilePath, GitHash


@pytest.fixture
def analyzer(change_store):
    return HotspotAnalyzer(change_store)


class TestRanking:
    def test_tie_broken_by_total_lines(self, analyzer, change_store, project_id):
        """A: 5 commits / 40 lines outranks B: 5 commits / 10 lines."""
        for n in range(1, 6):
            store_commit(change_store, project_id, n, {"A": (4, 4), "B": (1, 1)})

        rows = analyzer.rank(project_id, 10)
        assert [r.file_path for r in rows] == ["A", "B"]
        assert rows[0].change_count == rows[1].change_count == 5
        assert rows[0].total_lines == 40
        assert rows[1].total_lines == 10

    def test_change_count_desc(self, analyzer, change_store, project_id):
        store_commit(change_store, project_id, 1, {"rare.py": (500, 0), "hot.py": (1, 0)})
        store_commit(change_store, project_id, 2, {"hot.py": (1, 0)})
        store_commit(change_store, project_id, 3, {"hot.py": (1, 0)})

        rows = analyzer.rank(project_id, 0)
        assert [(r.file_path, r.change_count) for r in rows] == [("hot.py", 3), ("rare.py", 1)]

    def test_limit(self, analyzer, change_store, project_id):
        for n in range(1, 8):
            store_commit(change_store, project_id, n, {f"f{n}.py": (n, 0)})
        assert len(analyzer.rank(project_id, 3)) == 3
        assert len(analyzer.rank(project_id, 0)) == 7
        assert len(analyzer.rank(project_id, None)) == 7
        assert len(analyzer.rank(project_id, -1)) == 7

    def test_empty_project(self, analyzer, project_id):
        assert analyzer.rank(project_id, 10) == []

    def test_counts_distinct_commits(self, analyzer, change_store, project_id):
        """Two rows for one path in one commit count as a single change."""
        commit = change_store.create_commit(
            Commit(
                project_id=project_id,
                hash=GitHash(sha(1)),
                author="alice",
                timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
            )
        )
        change_store.create_changes_batch(
            [
                Change(FilePath("a.py"), 3, 0, commit_id=commit.id),
                Change(FilePath("./a.py"), 2, 1, commit_id=commit.id),
            ]
        )
        (row,) = analyzer.rank(project_id, 10)
        assert row.change_count == 1
        assert row.total_added == 5
        assert row.total_deleted == 1
