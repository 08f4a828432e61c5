"""Tests for the retention sweeper."""

from datetime import datetime, timedelta, timezone

import pytest

from jbs_cli.database import RunStatus, RunStore
from jbs_cli.scheduler.retention import DEFAULT_RETENTION, RetentionSweeper

NOW = datetime(2026, 3, 8, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    store = RunStore(":memory:")
    yield store
    store.close()


def add_run(store: RunStore, job_id: str, scheduled_at: datetime) -> int:
    run_id = store.insert_running(job_id, scheduled_at)
    store.complete_run(run_id, scheduled_at, RunStatus.SUCCESS, "")
    return run_id


class TestRetentionSweeper:
    """Tests for RetentionSweeper."""

    def test_default_is_one_week(self, store):
        sweeper = RetentionSweeper(store)
        assert sweeper.retention == DEFAULT_RETENTION == 604800

    def test_negative_retention_rejected(self, store):
        """Test that a negative window is refused."""
        with pytest.raises(ValueError):
            RetentionSweeper(store, retention=-1)

    def test_cutoff(self, store):
        """Test that the cutoff is now minus the window."""
        sweeper = RetentionSweeper(store, retention=3600, clock=lambda: NOW)
        assert sweeper.cutoff() == NOW - timedelta(hours=1)

    def test_sweep_boundary(self, store):
        """Test that only runs strictly older than the cutoff are deleted."""
        sweeper = RetentionSweeper(store, retention=3600, clock=lambda: NOW)
        older = add_run(store, "job", NOW - timedelta(seconds=3601))
        at_cutoff = add_run(store, "job", NOW - timedelta(seconds=3600))
        newer = add_run(store, "job", NOW - timedelta(seconds=10))

        assert sweeper.sweep() == 1
        assert store.get_run(older) is None
        assert store.get_run(at_cutoff) is not None
        assert store.get_run(newer) is not None

    def test_sweep_all_jobs(self, store):
        """Test that every job's runs are swept together."""
        sweeper = RetentionSweeper(store, retention=60, clock=lambda: NOW)
        add_run(store, "a", NOW - timedelta(days=1))
        add_run(store, "b", NOW - timedelta(days=2))

        assert sweeper.sweep() == 2
        assert store.count_runs() == 0

    def test_zero_retention(self, store):
        """Test that a zero window deletes everything scheduled before now."""
        sweeper = RetentionSweeper(store, retention=0, clock=lambda: NOW)
        add_run(store, "job", NOW - timedelta(seconds=1))
        add_run(store, "job", NOW)

        assert sweeper.sweep() == 1
        assert store.count_runs() == 1

    def test_sweep_empty_store(self, store):
        sweeper = RetentionSweeper(store, clock=lambda: NOW)
        assert sweeper.sweep() == 0
