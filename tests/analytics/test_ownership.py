"""Tests for file ownership and bus factor."""

import pytest
from conftest import store_commit

from codeecho.analytics.models import AuthorShare
from codeecho.analytics.ownership import (
    OwnershipAnalyzer,
    bus_factor_risk,
    compute_bus_factor,
    ownership_risk,
)
from codeecho.domain.models import DateRange


@pytest.fixture
def analyzer(change_store):
    return OwnershipAnalyzer(change_store)


class TestRiskLevels:
    @pytest.mark.parametrize(
        "pct, level",
        [(100, "critical"), (91, "critical"), (90, "high"), (71, "high"), (60, "medium"), (50, "low")],
    )
    def test_ownership_risk(self, pct, level):
        assert ownership_risk(pct) == level

    @pytest.mark.parametrize("bf, level", [(1, "high"), (2, "medium"), (3, "low"), (7, "low")])
    def test_bus_factor_risk(self, bf, level):
        assert bus_factor_risk(bf) == level

    def test_compute_bus_factor(self):
        shares = [AuthorShare("a", 4, 40.0), AuthorShare("b", 3, 30.0), AuthorShare("c", 3, 30.0)]
        assert compute_bus_factor(shares) == 2
        assert compute_bus_factor([AuthorShare("a", 1, 50.0), AuthorShare("b", 1, 50.0)]) == 1


class TestFileOwnership:
    def test_primary_owner_by_lines(self, analyzer, change_store, project_id):
        store_commit(change_store, project_id, 1, {"a.py": (90, 0)}, author="alice")
        store_commit(change_store, project_id, 2, {"a.py": (5, 5)}, author="bob")
        store_commit(change_store, project_id, 3, {"a.py": (0, 0)}, author="bob")

        (own,) = analyzer.file_ownership(project_id)
        assert own.primary_owner == "alice"
        assert own.ownership_percentage == pytest.approx(90.0)
        assert own.total_contributors == 2
        assert own.risk_level == "high"
        assert [c.author for c in own.contributors] == ["alice", "bob"]
        assert own.contributors[1].commits == 2

    def test_zero_line_file_falls_back_to_commits(self, analyzer, change_store, project_id):
        store_commit(change_store, project_id, 1, {"empty": (0, 0)}, author="alice")
        (own,) = analyzer.file_ownership(project_id)
        assert own.ownership_percentage == 100.0
        assert own.risk_level == "critical"

    def test_to_dict(self, analyzer, change_store, project_id):
        store_commit(change_store, project_id, 1, {"a.py": (1, 0)})
        data = analyzer.file_ownership(project_id)[0].to_dict()
        assert data["file_path"] == "a.py"
        assert isinstance(data["contributors"][0]["last_modified"], str)


class TestBusFactor:
    @pytest.fixture
    def seeded(self, change_store, project_id):
        # solo.py: alice only -> 1
        # shared.py: alice 2, bob 2, carol 2 -> alice 33% + bob 33% -> 2
        # team/x.py: 4 authors with one commit each -> 2
        # team/y.py: 5 authors, 1 each -> 3
        n = 0

        def add(path, author, day=1):
            nonlocal n
            n += 1
            store_commit(change_store, project_id, n, {path: (1, 0)}, author=author, day=day)

        add("solo.py", "alice")
        add("solo.py", "alice", day=20)
        for author in ("alice", "bob", "carol"):
            add("shared.py", author)
            add("shared.py", author)
        for author in ("a", "b", "c", "d"):
            add("team/x.py", author)
        for author in ("a", "b", "c", "d", "e"):
            add("team/y.py", author)
        return project_id

    def test_per_file(self, analyzer, seeded):
        report = analyzer.bus_factor(seeded)
        by_path = {e.file_path: e for e in report.files}
        assert by_path["solo.py"].bus_factor == 1
        assert by_path["solo.py"].risk_level == "high"
        assert by_path["shared.py"].bus_factor == 2
        assert by_path["team/x.py"].bus_factor == 2
        assert by_path["team/y.py"].bus_factor == 3
        assert by_path["team/y.py"].risk_level == "low"
        assert len(by_path["team/y.py"].top_authors) == 5

    def test_sorted_riskiest_first(self, analyzer, seeded):
        report = analyzer.bus_factor(seeded)
        assert report.files[0].file_path == "solo.py"

    def test_summary(self, analyzer, seeded):
        s = analyzer.bus_factor(seeded).summary
        assert s.total_files == 4
        assert s.high_risk_files == 1
        assert s.medium_risk_files == 2
        assert s.low_risk_files == 1
        assert s.distribution == {1: 1, 2: 2, 3: 1}
        assert s.average_bus_factor == pytest.approx(2.0)

    def test_path_prefix(self, analyzer, seeded):
        report = analyzer.bus_factor(seeded, path_prefix="/team/")
        assert {e.file_path for e in report.files} == {"team/x.py", "team/y.py"}
        assert report.path_prefix == "team"

    def test_risk_filter(self, analyzer, seeded):
        report = analyzer.bus_factor(seeded, risk_level="MEDIUM")
        assert {e.file_path for e in report.files} == {"shared.py", "team/x.py"}
        assert report.summary.total_files == 2
        assert analyzer.bus_factor(seeded, risk_level="all").summary.total_files == 4

    def test_bad_risk_filter(self, analyzer, seeded):
        with pytest.raises(ValueError):
            analyzer.bus_factor(seeded, risk_level="extreme")

    def test_date_range(self, analyzer, seeded):
        report = analyzer.bus_factor(seeded, date_range=DateRange.from_dates("2024-03-15"))
        assert [e.file_path for e in report.files] == ["solo.py"]
        assert report.files[0].total_commits == 1

    def test_empty(self, analyzer, project_id):
        report = analyzer.bus_factor(project_id)
        assert report.files == []
        assert report.summary.average_bus_factor == 0.0
