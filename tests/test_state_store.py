"""Tests for the repository state store."""

import json
from datetime import datetime, timezone

import pytest

from bitbucket_migrate.models.repository import MAX_RETRIES, RepositoryRecord
from bitbucket_migrate.state.exceptions import (
    RepositoryNotFoundError,
    StoreUnavailableError,
)
from bitbucket_migrate.state.store import RepositoryStateStore


@pytest.fixture
def store(tmp_path):
    store = RepositoryStateStore(str(tmp_path / 'repos.json'))
    store.initialize(
        [
            RepositoryRecord(name='alpha', branch='main'),
            RepositoryRecord(name='beta', branch='master'),
            RepositoryRecord(name='gamma', branch='develop'),
        ]
    )
    return store


class TestRepositoryStateStore:
    """Test state table operations."""

    def test_load_missing_file(self, tmp_path):
        """Test a missing table is reported as unavailable."""
        with pytest.raises(StoreUnavailableError):
            RepositoryStateStore(str(tmp_path / 'missing.json')).load()

    def test_load_corrupt_file(self, tmp_path):
        """Test unparseable content is reported as unavailable."""
        path = tmp_path / 'repos.json'
        path.write_text('{not json')

        with pytest.raises(StoreUnavailableError):
            RepositoryStateStore(str(path)).load()

    def test_load_wrong_shape(self, tmp_path):
        """Test a non-list document is rejected."""
        path = tmp_path / 'repos.json'
        path.write_text('{"name": "x"}')

        with pytest.raises(StoreUnavailableError):
            RepositoryStateStore(str(path)).load()

    def test_original_layout_is_readable(self, tmp_path):
        """Test a hand written table with only name and branch loads."""
        path = tmp_path / 'repos.json'
        path.write_text(json.dumps([{'name': 'x', 'branch': 'main'}]))

        records = RepositoryStateStore(str(path)).load()

        assert records[0].is_pending
        assert records[0].retry_count == 0

    def test_round_trip_is_lossless(self, store):
        """Test every field survives a save and load."""
        pushed = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        store.update(
            'alpha',
            transferred=True,
            pushed_at=pushed,
            created_at=pushed,
            lfs=True,
        )
        before = store.load()
        store.save(before)

        assert store.load() == before
        assert store.get('alpha').pushed_at == pushed

    def test_file_is_indented_json(self, store):
        """Test the table stays readable by hand."""
        content = store.path.read_text()

        assert content.startswith('[\n  {')
        assert json.loads(content)[1]['name'] == 'beta'

    def test_initialize_refuses_overwrite(self, store):
        """Test an existing table is kept unless forced."""
        with pytest.raises(FileExistsError):
            store.initialize([RepositoryRecord(name='new', branch='main')])

        store.initialize([RepositoryRecord(name='new', branch='main')], force=True)
        assert [r.name for r in store.load()] == ['new']

    def test_pending_preserves_order(self, store):
        """Test pending repositories come back in table order."""
        store.update('beta', transferred=True)

        assert [r.name for r in store.pending_repositories()] == ['alpha', 'gamma']

    def test_update_unknown_repository(self, store):
        """Test updating a missing name raises."""
        with pytest.raises(RepositoryNotFoundError):
            store.update('nope', processing=True)

    def test_update_unknown_field(self, store):
        """Test unknown fields are rejected."""
        with pytest.raises(ValueError):
            store.update('alpha', colour='blue')

    def test_update_transferred_clears_flags(self, store):
        """Test marking transferred resets processing and error."""
        store.update('alpha', processing=True, error='old failure')

        record = store.update('alpha', transferred=True)

        assert record.processing is False
        assert record.error is None
        assert record.pushed_at is not None

    def test_mark_completed_clears_error(self, store):
        """Test completion after a failure leaves no error behind."""
        store.mark_processing('alpha')
        store.mark_failed('alpha', 'push rejected')
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)

        record = store.mark_completed('alpha', created_at=created, lfs=True)

        assert record.transferred is True
        assert record.error is None
        assert record.processing is False
        assert record.created_at == created
        assert record.lfs is True
        assert record.pushed_at is not None

    def test_mark_processing(self, store):
        """Test processing removes the record from the pending queue."""
        store.mark_processing('alpha')

        assert store.get('alpha').processing is True
        assert 'alpha' not in [r.name for r in store.pending_repositories()]

    def test_retry_ceiling(self, store):
        """Test a record leaves the queue after the retry limit."""
        for attempt in range(1, MAX_RETRIES + 1):
            store.mark_processing('beta')
            record = store.mark_failed('beta', f'failure {attempt}')
            assert record.retry_count == attempt

        assert record.is_exhausted
        assert 'beta' not in [r.name for r in store.pending_repositories()]
        assert [r.name for r in store.failed_repositories()] == ['beta']

    def test_clear_error_restores_eligibility(self, store):
        """Test clearing the error puts an exhausted record back in the queue."""
        for _ in range(MAX_RETRIES):
            store.mark_failed('beta', 'boom')

        record = store.clear_error('beta')

        assert record.error is None
        assert record.retry_count == 0
        assert 'beta' in [r.name for r in store.pending_repositories()]

    def test_release_keeps_retry_budget(self, store):
        """Test releasing a record does not consume a retry."""
        store.mark_processing('gamma')

        record = store.release('gamma', 'rate limited')

        assert record.processing is False
        assert record.retry_count == 0
        assert record.is_pending

    def test_reset_stale_processing_is_idempotent(self, store):
        """Test resetting twice equals resetting once."""
        store.mark_processing('alpha')
        store.mark_processing('gamma')

        assert store.reset_stale_processing() == 2
        first = store.load()
        assert store.reset_stale_processing() == 0
        assert store.load() == first
        assert all(not r.processing for r in first)

    def test_statistics(self, store):
        """Test aggregate counts and progress."""
        store.mark_completed('alpha', lfs=True)
        store.mark_failed('beta', 'boom')

        stats = store.statistics()

        assert stats.total == 3
        assert stats.transferred == 1
        assert stats.failed == 1
        assert stats.pending == 2
        assert stats.lfs_repositories == 1
        assert stats.lfs_transferred == 1
        assert stats.progress == 33.3

    def test_statistics_empty(self, tmp_path):
        """Test an empty table reports zero progress."""
        store = RepositoryStateStore(str(tmp_path / 'repos.json'))
        store.initialize([])

        assert store.statistics().progress == 0.0

    def test_snapshot(self, store):
        """Test a backup copy is written next to the table."""
        backup = store.snapshot()

        assert backup.parent == store.path.parent
        assert backup.name.startswith('repos-backup-')
        assert json.loads(backup.read_text()) == json.loads(store.path.read_text())
