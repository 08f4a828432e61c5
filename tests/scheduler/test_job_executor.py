"""Tests for the job executor."""

import logging
import subprocess
import sys
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from jbs_cli.database import RunStatus, RunStore
from jbs_cli.exceptions import JobAttemptFailed, JobPermanentlyFailed
from jbs_cli.scheduler.interval import MANUAL
from jbs_cli.scheduler.job_executor import JobExecutor, _join_output
from jbs_cli.scheduler.registry import Job

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def store():
    """Create an in-memory run store."""
    store = RunStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def executor(store, clock) -> JobExecutor:
    """Create an executor that never really sleeps."""
    return JobExecutor(store, clock=clock, sleep=Mock())


def make_job(work, job_id: str = "job") -> Job:
    return Job(job_id=job_id, interval=MANUAL, work=work)


def failing(message: str = "boom"):
    def work():
        raise RuntimeError(message)
    return work


class TestJobExecutorInit:
    """Tests for executor construction."""

    def test_defaults(self, store):
        """Test default retry settings."""
        executor = JobExecutor(store)
        assert executor.max_attempts == 3
        assert executor.retry_delay == 0.0
        assert executor.retry_backoff == 1.0
        assert executor.attempt_timeout is None

    def test_rejects_zero_attempts(self, store):
        """Test that at least one attempt is required."""
        with pytest.raises(ValueError):
            JobExecutor(store, max_attempts=0)

    def test_rejects_negative_delay(self, store):
        """Test that negative delays are rejected."""
        with pytest.raises(ValueError):
            JobExecutor(store, retry_delay=-1)

    def test_now_is_utc(self, store):
        """Test that naive clock values are treated as UTC."""
        executor = JobExecutor(store, clock=lambda: datetime(2026, 1, 1, 8, 0, 0))
        assert executor.now().tzinfo == timezone.utc


class TestSuccessfulExecution:
    """Tests for jobs that succeed."""

    def test_single_success_row(self, executor, store):
        """Test that a succeeding job records one success row."""
        result = executor.execute(make_job(lambda: None, "news"))

        assert result.success
        assert not result.skipped
        assert len(result.attempts) == 1
        assert result.error is None

        runs = store.list_runs(job_id="news")
        assert len(runs) == 1
        assert runs[0].status == RunStatus.SUCCESS.value
        assert runs[0].executed_at is not None
        assert not store.is_running("news")

    def test_stdout_is_captured(self, executor, store):
        """Test that printed output becomes the run output."""
        def work():
            print("fetched 12 items")

        result = executor.execute(make_job(work))

        assert result.output == "fetched 12 items"
        assert store.get_run(result.run_ids[0]).output == "fetched 12 items"

    def test_return_value_is_appended(self, executor):
        """Test that a non-None return value is part of the output."""
        def work():
            print("working")
            return 42

        result = executor.execute(make_job(work))
        assert result.output == "working\n42"

    def test_timestamps_come_from_clock(self, executor, store, clock):
        """Test that scheduled_at is the time of the attempt."""
        result = executor.execute(make_job(lambda: None))
        run = store.get_run(result.run_ids[0])
        assert run.scheduled_at == START
        assert result.started_at == START


class TestRetry:
    """Tests for bounded retry."""

    def test_always_failing_records_three_rows(self, executor, store):
        """Test that a failing job is attempted exactly three times."""
        callback = Mock()
        result = executor.execute(make_job(failing(), "flaky"), on_failure=callback)

        assert not result.success
        assert len(result.attempts) == 3
        assert [a.attempt for a in result.attempts] == [1, 2, 3]

        runs = store.list_runs(job_id="flaky")
        assert len(runs) == 3
        assert all(run.status == RunStatus.FAILED.value for run in runs)
        assert all("boom" in run.output for run in runs)

        callback.assert_called_once()
        job_id, output = callback.call_args[0]
        assert job_id == "flaky"
        assert output == result.attempts[-1].output
        assert "boom" in output

    def test_failure_output_format(self, executor):
        """Test the recorded failure text."""
        result = executor.execute(make_job(failing("disk full")))
        assert result.output == "Exception: disk full"

    def test_failure_output_keeps_stdout(self, executor):
        """Test that output printed before raising is kept."""
        def work():
            print("step 1 done")
            raise RuntimeError("step 2 failed")

        result = executor.execute(make_job(work))
        assert result.output == "step 1 done\nException: step 2 failed"

    def test_permanent_failure_attached(self, executor):
        """Test that the permanent failure is reported on the result."""
        result = executor.execute(make_job(failing(), "flaky"))

        assert isinstance(result.error, JobPermanentlyFailed)
        assert result.error.job_id == "flaky"
        assert result.error.attempts == 3
        assert "boom" in result.error.output

    def test_attempt_errors_wrap_cause(self, executor):
        """Test that each failed attempt keeps its original exception."""
        result = executor.execute(make_job(failing()))

        for attempt in result.attempts:
            assert isinstance(attempt.error, JobAttemptFailed)
            assert isinstance(attempt.error.cause, RuntimeError)

    def test_success_on_second_attempt(self, executor, store):
        """Test that a job succeeding on retry records two rows."""
        calls = {"count": 0}

        def work():
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("transient")

        callback = Mock()
        result = executor.execute(make_job(work, "retry"), on_failure=callback)

        assert result.success
        assert len(result.attempts) == 2

        runs = store.list_runs(job_id="retry")
        assert len(runs) == 2
        # Newest first
        assert runs[0].status == RunStatus.SUCCESS.value
        assert runs[1].status == RunStatus.FAILED.value
        callback.assert_not_called()

    def test_max_attempts_is_configurable(self, store, clock):
        """Test a single-attempt executor."""
        executor = JobExecutor(store, max_attempts=1, clock=clock)
        callback = Mock()

        result = executor.execute(make_job(failing()), on_failure=callback)

        assert len(result.attempts) == 1
        assert store.count_runs() == 1
        callback.assert_called_once()

    def test_no_callback_is_fine(self, executor):
        """Test that a failing job without a callback just returns."""
        result = executor.execute(make_job(failing()))
        assert not result.success

    def test_callback_error_is_logged(self, executor, caplog):
        """Test that a raising callback does not escape execute()."""
        def callback(job_id, output):
            raise ValueError("alerting down")

        with caplog.at_level(logging.ERROR):
            result = executor.execute(make_job(failing(), "flaky"), on_failure=callback)

        assert not result.success
        assert "Failure callback raised for job flaky" in caplog.text


class TestBackoff:
    """Tests for the delay between attempts."""

    def test_immediate_by_default(self, executor):
        """Test that retries do not sleep by default."""
        executor.execute(make_job(failing()))
        executor._sleep.assert_not_called()

    def test_delay_with_backoff(self, store, clock):
        """Test the growing delay before attempts two and three."""
        sleep = Mock()
        executor = JobExecutor(
            store, retry_delay=2.0, retry_backoff=3.0, clock=clock, sleep=sleep
        )

        executor.execute(make_job(failing()))

        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 6.0]

    def test_delay_before(self, store):
        """Test delay_before for each attempt number."""
        executor = JobExecutor(store, retry_delay=1.5, retry_backoff=2.0)
        assert executor.delay_before(1) == 0.0
        assert executor.delay_before(2) == 1.5
        assert executor.delay_before(3) == 3.0

    def test_no_sleep_after_success(self, store, clock):
        """Test that a first-attempt success never sleeps."""
        sleep = Mock()
        executor = JobExecutor(store, retry_delay=5.0, clock=clock, sleep=sleep)
        executor.execute(make_job(lambda: None))
        sleep.assert_not_called()


class TestAttemptTimeout:
    """Tests for the per-attempt time limit."""

    def test_hung_attempt_stops_retrying(self, store, clock):
        """Test that a timed-out attempt is not retried while it still runs."""
        release = threading.Event()
        lock = threading.Lock()
        state = {"calls": 0, "active": 0, "peak": 0}

        def work():
            with lock:
                state["calls"] += 1
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            try:
                release.wait(5)
            finally:
                with lock:
                    state["active"] -= 1

        callback = Mock()
        executor = JobExecutor(store, max_attempts=3, attempt_timeout=0.05, clock=clock)

        try:
            result = executor.execute(make_job(work, "hung"), on_failure=callback)
            calls, peak = state["calls"], state["peak"]
            still_running = store.is_running("hung")
        finally:
            release.set()

        assert calls == 1
        assert peak == 1
        assert len(result.attempts) == 1
        assert result.attempts[0].timed_out
        assert not result.success
        assert isinstance(result.error, JobPermanentlyFailed)
        assert "timed out after 0.05s" in result.output
        callback.assert_called_once_with("hung", result.output)
        assert still_running
        assert store.count_runs(job_id="hung") == 1

    def test_hung_attempt_blocks_next_execution(self, store, clock):
        """Test that a later execution is skipped until the run is released."""
        release = threading.Event()
        executor = JobExecutor(store, max_attempts=1, attempt_timeout=0.05, clock=clock)
        work = Mock()

        try:
            executor.execute(make_job(lambda: release.wait(5), "hung"))
            second = executor.execute(make_job(work, "hung"))
        finally:
            release.set()

        assert second.skipped
        work.assert_not_called()

        store.release_job("hung", clock())
        assert executor.execute(make_job(lambda: None, "hung")).success

    def test_hung_attempt_thread_is_daemon(self, store, clock):
        """Test that an abandoned attempt cannot keep the process alive."""
        release = threading.Event()
        executor = JobExecutor(store, max_attempts=1, attempt_timeout=0.05, clock=clock)

        try:
            executor.execute(make_job(lambda: release.wait(5), "hung"))
            attempt_threads = [t for t in threading.enumerate() if t.name == "jbs-attempt"]
        finally:
            release.set()

        assert attempt_threads
        assert all(t.daemon for t in attempt_threads)

    def test_process_exits_despite_hung_attempt(self, tmp_path):
        """Test that a process whose attempt hangs still exits promptly."""
        script = tmp_path / "hung.py"
        script.write_text(
            "import time\n"
            "from jbs_cli.database import RunStore\n"
            "from jbs_cli.scheduler import Job, JobExecutor\n"
            "store = RunStore(':memory:')\n"
            "JobExecutor(store, max_attempts=3, attempt_timeout=0.2).execute(\n"
            "    Job('hung', 60, lambda: time.sleep(30))\n"
            ")\n"
        )

        started = time.monotonic()
        completed = subprocess.run([sys.executable, str(script)], timeout=25)
        elapsed = time.monotonic() - started

        assert completed.returncode == 0
        assert elapsed < 15

    def test_fast_attempt_within_timeout(self, store, clock):
        """Test that a quick job is unaffected by the timeout."""
        executor = JobExecutor(store, attempt_timeout=5, clock=clock)
        result = executor.execute(make_job(lambda: "done"))
        assert result.success
        assert result.output == "done"

    def test_work_raising_timeout_error(self, store, clock):
        """Test that a TimeoutError from the work itself is reported as such."""
        def work():
            raise TimeoutError("upstream slow")

        executor = JobExecutor(store, max_attempts=1, attempt_timeout=5, clock=clock)
        result = executor.execute(make_job(work))
        assert result.output == "Exception: upstream slow"


class TestInFlightGuard:
    """Tests for the claim that keeps attempts from overlapping."""

    def test_skipped_when_already_running(self, executor, store, clock):
        """Test that an in-flight row blocks a new execution."""
        store.insert_running("job", clock())
        work = Mock()

        result = executor.execute(make_job(work))

        assert result.skipped
        assert result.attempts == []
        work.assert_not_called()
        assert store.count_runs(job_id="job") == 1

    def test_interrupt_completes_the_row(self, executor, store):
        """Test that Ctrl+C mid-attempt does not leave the job blocked."""
        def work():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            executor.execute(make_job(work, "interrupted"))

        assert not store.is_running("interrupted")
        run = store.last_run("interrupted")
        assert run.status == RunStatus.FAILED.value
        assert "Interrupted: KeyboardInterrupt" in run.output


class TestJoinOutput:
    """Tests for the output joiner."""

    def test_skips_empty_parts(self):
        assert _join_output("", "Exception: x") == "Exception: x"

    def test_strips_trailing_newlines(self):
        assert _join_output("line\n", "more") == "line\nmore"
