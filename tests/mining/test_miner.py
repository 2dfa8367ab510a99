"""Tests for RepositoryMiner full/incremental ingestion and cancellation."""

import pytest
from conftest import FakeHistorySource, make_record, sha

from codeecho.config import CodeEchoConfig
from codeecho.domain.models import IngestionMode, IngestionOutcome
from codeecho.domain.values import GitHash
from codeecho.exceptions import (
    CheckpointNotFoundError,
    HistoryWalkError,
    InvalidHash,
    ProjectNotFound,
    StoreError,
)
from codeecho.history.git_source import GitHistorySource
from codeecho.mining.miner import RepositoryMiner
from codeecho.mining.registry import AnalysisJobRegistry


def _history(n=4):
    return [
        make_record(i, {f"src/f{i % 2}.py": (i, 0), "README.md": (1, 1)}) for i in range(1, n + 1)
    ]


@pytest.fixture
def registry():
    return AnalysisJobRegistry()


@pytest.fixture
def source():
    return FakeHistorySource(_history())


@pytest.fixture
def miner(source, change_store, project_store, registry):
    return RepositoryMiner(
        source, change_store, project_store, registry, CodeEchoConfig(progress_interval=1)
    )


@pytest.fixture
def project(miner):
    return miner.ensure_project("api", "/srv/api")


class TestEnsureProject:
    def test_idempotent(self, miner, project_store):
        first = miner.ensure_project("api", "/srv/api")
        second = miner.ensure_project("api", "/srv/other")
        assert first.id == second.id
        assert len(project_store.list_all()) == 1

    def test_empty_name(self, miner):
        with pytest.raises(ValueError):
            miner.ensure_project("  ", "/srv/api")

    def test_unknown_project(self, miner):
        with pytest.raises(ProjectNotFound):
            miner.ingest_full(999)


class TestFullIngestion:
    def test_counts_and_checkpoint(self, miner, project, project_store):
        result = miner.ingest_full(project.id)

        assert result.mode is IngestionMode.FULL
        assert result.outcome is IngestionOutcome.COMPLETED
        assert result.commit_count == 4
        assert result.change_count == 8
        assert result.file_count == 3
        assert result.error_count == 0
        assert result.checkpoint == sha(4)
        assert project_store.get_by_id(project.id).last_analyzed_hash == GitHash(sha(4))

    def test_commits_persisted_oldest_first(self, miner, project, change_store):
        miner.ingest_full(project.id)
        events = change_store.change_events(project.id)
        assert events[0].commit_hash == sha(1)

    def test_walks_once_per_commit(self, miner, project, source):
        seen = []
        source.on_yield = lambda i, record: seen.append(record.hash)
        miner.ingest_full(project.id)
        assert seen == [sha(i) for i in range(1, 5)]

    def test_rerun_skips_stored_commits(self, miner, project):
        miner.ingest_full(project.id)
        again = miner.ingest_full(project.id)
        assert again.commit_count == 0
        assert again.skipped_count == 4
        assert again.checkpoint == sha(4)

    def test_empty_history(self, change_store, project_store):
        miner = RepositoryMiner(FakeHistorySource([]), change_store, project_store)
        project = miner.ensure_project("empty", "/srv/empty")
        result = miner.ingest_full(project.id)
        assert result.commit_count == 0
        assert result.checkpoint is None
        assert not project_store.get_by_id(project.id).is_analyzed

    def test_commit_without_changes(self, change_store, project_store):
        source = FakeHistorySource([make_record(1, {"a.py": (1, 0)}), make_record(2, {})])
        miner = RepositoryMiner(source, change_store, project_store)
        project = miner.ensure_project("p", "/p")
        result = miner.ingest_full(project.id)
        assert result.commit_count == 2
        assert result.change_count == 1
        assert change_store.commit_count(project.id) == 2


class TestPerCommitErrors:
    def test_bad_hash_counted_and_skipped(self, change_store, project_store):
        records = _history(3)
        records[1].hash = "not-a-hash"
        miner = RepositoryMiner(FakeHistorySource(records), change_store, project_store)
        project = miner.ensure_project("p", "/p")

        result = miner.ingest_full(project.id)
        assert result.error_count == 1
        assert result.commit_count == 2
        assert result.outcome is IngestionOutcome.COMPLETED

    def test_bad_timestamp_counted(self, change_store, project_store):
        records = _history(2)
        records[0].timestamp = "last tuesday"
        miner = RepositoryMiner(FakeHistorySource(records), change_store, project_store)
        project = miner.ensure_project("p", "/p")
        assert miner.ingest_full(project.id).error_count == 1

    def test_invalid_path_skipped_not_fatal(self, change_store, project_store):
        source = FakeHistorySource(
            [make_record(1, {"ok.py": (1, 0), "../escape.py": (1, 0), "": (1, 0)})]
        )
        miner = RepositoryMiner(source, change_store, project_store)
        project = miner.ensure_project("p", "/p")
        result = miner.ingest_full(project.id)
        assert result.error_count == 0
        assert result.change_count == 1
        assert [c.file_path.value for c in change_store.changes_for_project(project.id)] == [
            "ok.py"
        ]

    def _flaky_miner(self, source, change_store, project_store, failing):
        class FlakyStore(type(change_store)):
            def record_commit(self, commit, changes):
                if commit.hash.value in failing:
                    raise StoreError("database is locked")
                return super().record_commit(commit, changes)

        return RepositoryMiner(source, FlakyStore(change_store.db), project_store)

    def test_write_failure_counted(self, source, change_store, project_store):
        miner = self._flaky_miner(source, change_store, project_store, {sha(2)})
        project = miner.ensure_project("p", "/p")
        result = miner.ingest_full(project.id)
        assert result.error_count == 1
        assert result.commit_count == 3

    def test_failed_newest_commit_holds_checkpoint(self, source, change_store, project_store):
        failing = {sha(4)}
        miner = self._flaky_miner(source, change_store, project_store, failing)
        project = miner.ensure_project("p", "/p")

        full = miner.ingest_full(project.id)
        assert full.error_count == 1
        assert full.checkpoint == sha(3)
        assert full.last_persisted_hash == sha(3)

        failing.clear()
        retry = miner.ingest_incremental(project.id)
        assert retry.commit_count == 1
        assert retry.checkpoint == sha(4)
        assert change_store.commit_count(project.id) == 4

    def test_failed_middle_commit_retried(self, source, change_store, project_store):
        failing = {sha(2)}
        miner = self._flaky_miner(source, change_store, project_store, failing)
        project = miner.ensure_project("p", "/p")

        full = miner.ingest_full(project.id)
        assert full.commit_count == 3
        assert full.checkpoint == sha(1)
        assert full.last_persisted_hash == sha(4)

        failing.clear()
        retry = miner.ingest_incremental(project.id)
        assert retry.commit_count == 1
        assert retry.skipped_count == 2
        assert retry.checkpoint == sha(4)
        assert change_store.commit_count(project.id) == 4

    def test_first_commit_failing_leaves_project_unanalyzed(
        self, source, change_store, project_store
    ):
        miner = self._flaky_miner(source, change_store, project_store, {sha(1)})
        project = miner.ensure_project("p", "/p")
        result = miner.ingest_full(project.id)
        assert result.checkpoint is None
        assert not project_store.get_by_id(project.id).is_analyzed

    def test_source_failure_is_fatal(self, source, miner, project, project_store):
        source.fail_with = HistoryWalkError("/srv/api", "git log failed")
        with pytest.raises(HistoryWalkError):
            miner.ingest_full(project.id)
        assert not project_store.get_by_id(project.id).is_analyzed

    def test_failure_mid_walk_keeps_earlier_commits(self, source, miner, project, change_store):
        def explode(i, record):
            if i == 2:
                raise HistoryWalkError("/srv/api", "diff failed", commit=record.hash)

        source.on_yield = explode
        with pytest.raises(HistoryWalkError):
            miner.ingest_full(project.id)
        assert change_store.commit_count(project.id) == 2


class TestIncrementalIngestion:
    def test_noop_after_full(self, miner, project, project_store):
        full = miner.ingest_full(project.id)
        incremental = miner.ingest_incremental(project.id, since_hash=full.checkpoint)

        assert incremental.mode is IngestionMode.INCREMENTAL
        assert incremental.commit_count == 0
        assert incremental.checkpoint == full.checkpoint
        assert project_store.get_by_id(project.id).last_analyzed_hash == GitHash(full.checkpoint)

    def test_only_new_commits(self, miner, project, source, change_store):
        miner.ingest_full(project.id)
        source.records.append(make_record(5, {"new.py": (3, 0)}))
        source.records.append(make_record(6, {"new.py": (4, 0)}))

        result = miner.ingest_incremental(project.id)
        assert source.walks[-1] == sha(4)
        assert result.commit_count == 2
        assert result.checkpoint == sha(6)
        assert result.last_persisted_hash == sha(6)
        assert change_store.commit_count(project.id) == 6

    def test_never_repersists_since_commit(self, miner, project, source, change_store):
        result = miner.ingest_incremental(project.id, since_hash=sha(2))
        assert result.commit_count == 2
        hashes = {e.commit_hash for e in change_store.change_events(project.id)}
        assert sha(2) not in hashes
        assert hashes == {sha(3), sha(4)}

    def test_uppercase_since_hash(self, miner, project):
        result = miner.ingest_incremental(project.id, since_hash=sha(3).upper())
        assert result.commit_count == 1

    def test_invalid_since_hash(self, miner, project):
        with pytest.raises(InvalidHash):
            miner.ingest_incremental(project.id, since_hash="HEAD~1")

    def test_missing_checkpoint_fails_fast(self, miner, project):
        with pytest.raises(CheckpointNotFoundError):
            miner.ingest_incremental(project.id, since_hash="e" * 40)

    def test_missing_checkpoint_falls_back_to_full(
        self, source, change_store, project_store, registry
    ):
        miner = RepositoryMiner(
            source,
            change_store,
            project_store,
            registry,
            CodeEchoConfig(on_missing_checkpoint="full"),
        )
        project = miner.ensure_project("p", "/p")
        result = miner.ingest_incremental(project.id, since_hash="e" * 40)
        assert source.walks == ["e" * 40, None]
        assert result.commit_count == 4
        assert result.checkpoint == sha(4)

    def test_ingest_picks_mode(self, miner, project):
        assert miner.ingest(project.id).mode is IngestionMode.FULL
        assert miner.ingest(project.id).mode is IngestionMode.INCREMENTAL


class TestCancellation:
    def test_cancel_at_commit_boundary(self, miner, project, source, registry, change_store):
        def cancel_after_two(i, record):
            if i == 1:
                registry.request_cancel(project.id)

        source.on_yield = cancel_after_two
        with registry.admit(project.id):
            result = miner.ingest_full(project.id)

        # the flag is set while the second record is handed over; the
        # boundary check before the third stops the walk
        assert result.outcome is IngestionOutcome.CANCELLED
        assert result.commit_count == 2
        assert change_store.commit_count(project.id) == 2
        assert result.checkpoint == sha(2)
        assert result.last_persisted_hash == sha(2)

    def test_checkpoint_never_past_last_persisted(self, miner, project, source, registry):
        source.on_yield = lambda i, record: i == 0 and registry.request_cancel(project.id)
        with registry.admit(project.id):
            result = miner.ingest_full(project.id)
        assert result.commit_count == 1
        assert result.checkpoint == sha(1)

    def test_cancelled_before_walk(self, miner, project, registry, source, project_store):
        with registry.admit(project.id):
            registry.request_cancel(project.id)
            result = miner.ingest_full(project.id)
        assert result.cancelled
        assert source.walks == []
        assert not project_store.get_by_id(project.id).is_analyzed

    def test_resume_after_cancel(self, miner, project, source, registry, change_store):
        source.on_yield = lambda i, record: i == 0 and registry.request_cancel(project.id)
        with registry.admit(project.id):
            miner.ingest_full(project.id)

        source.on_yield = None
        with registry.admit(project.id):
            result = miner.ingest(project.id)
        assert result.mode is IngestionMode.INCREMENTAL
        assert result.outcome is IngestionOutcome.COMPLETED
        assert result.commit_count == 3
        assert change_store.commit_count(project.id) == 4
        assert result.checkpoint == sha(4)


class TestWalkRelease:
    """The miner closes every walk it opens, whatever the outcome."""

    def test_closed_after_completed_run(self, miner, project, source):
        miner.ingest_full(project.id)
        assert source.closed == 1

    def test_closed_after_cancel(self, miner, project, source, registry):
        source.on_yield = lambda i, record: registry.request_cancel(project.id)
        with registry.admit(project.id):
            result = miner.ingest_full(project.id)
        assert result.cancelled
        assert source.closed == 1

    def test_closed_after_walk_failure(self, miner, project, source):
        def explode(i, record):
            raise HistoryWalkError("/srv/api", "diff failed", commit=record.hash)

        source.on_yield = explode
        with pytest.raises(HistoryWalkError):
            miner.ingest_full(project.id)
        assert source.closed == 1


class TestStatus:
    def test_before_and_after(self, miner, project, registry):
        before = miner.status(project.id)
        assert not before.is_analyzed
        assert before.commit_count == 0

        miner.ingest_full(project.id)
        after = miner.status(project.id)
        assert after.is_analyzed
        assert after.last_commit_hash == sha(4)
        assert after.commit_count == 4
        assert after.change_count == 8
        assert after.file_count == 3
        assert not after.running

    def test_running_flag(self, miner, project, registry):
        with registry.admit(project.id):
            registry.request_cancel(project.id)
            st = miner.status(project.id)
        assert st.running
        assert st.cancel_requested


@pytest.mark.git
class TestGitIngestion:
    """End to end against a real repository."""

    def test_full_then_incremental(self, git_repo, config, change_store, project_store):
        git_repo.commit({"a.py": "1\n2\n", "b.py": "x\n"})
        git_repo.commit({"a.py": "1\n2\n3\n"})
        miner = RepositoryMiner(GitHistorySource(config), change_store, project_store)
        project = miner.ensure_project("repo", str(git_repo.path))

        full = miner.ingest_full(project.id)
        assert full.commit_count == 2
        assert full.checkpoint == git_repo.head()

        noop = miner.ingest_incremental(project.id, since_hash=full.checkpoint)
        assert noop.commit_count == 0
        assert noop.checkpoint == full.checkpoint

        newest = git_repo.commit({"b.py": None, "c.py": "c\n"})
        more = miner.ingest(project.id)
        assert more.commit_count == 1
        assert more.checkpoint == newest
        assert more.file_count == 3

    def test_root_commit_changes(self, git_repo, config, change_store, project_store):
        git_repo.commit({"one.txt": "1\n", "two.txt": "1\n2\n", "dir/three.txt": "x"})
        miner = RepositoryMiner(GitHistorySource(config), change_store, project_store)
        project = miner.ensure_project("repo", str(git_repo.path))
        miner.ingest_full(project.id)

        changes = change_store.changes_for_project(project.id)
        assert len(changes) == 3
        assert all(c.lines_deleted == 0 for c in changes)
