"""Job executor for running registered jobs.

The JobExecutor runs a job's work function with a bounded number of
attempts, recording one run per attempt in the run store and calling the
failure callback once all attempts are exhausted.
"""

import io
import logging
import threading
import time
from contextlib import redirect_stdout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from jbs_cli.database.models import RunStatus, ensure_utc, utcnow
from jbs_cli.database.store import RunStore
from jbs_cli.exceptions import (
    AttemptTimeout,
    JobAttemptFailed,
    JobPermanentlyFailed,
)
from jbs_cli.scheduler.registry import FailureCallback, Job, WorkFunction

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class AttemptResult:
    """Outcome of a single attempt.

    Attributes:
        attempt: Attempt number, starting at 1
        run_id: ID of the run recorded for the attempt
        success: Whether the work function returned normally
        output: Output persisted for the run
        error: The wrapped error if the attempt failed
        timed_out: True if the attempt was abandoned at the time limit
    """

    attempt: int
    run_id: int
    success: bool
    output: str = ""
    error: Optional[JobAttemptFailed] = None
    timed_out: bool = False


@dataclass
class JobExecutionResult:
    """Result of one logical job execution (all of its attempts).

    Attributes:
        job_id: ID of the job that ran
        started_at: When execution started
        completed_at: When execution finished
        success: Whether an attempt succeeded
        skipped: True if another attempt already held the job
        attempts: Per-attempt outcomes in order
        error: Set when every attempt failed
    """

    job_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    success: bool = False
    skipped: bool = False
    attempts: List[AttemptResult] = field(default_factory=list)
    error: Optional[JobPermanentlyFailed] = None

    @property
    def output(self) -> str:
        """Output of the last attempt."""
        if not self.attempts:
            return ""
        return self.attempts[-1].output

    @property
    def run_ids(self) -> List[int]:
        """IDs of the runs recorded for this execution."""
        return [a.run_id for a in self.attempts]


def _join_output(*parts: str) -> str:
    return "\n".join(part.rstrip("\n") for part in parts if part)


class JobExecutor:
    """Executes jobs with bounded retry.

    Attempts are immediate by default. ``retry_delay`` adds a pause
    before the second attempt, multiplied by ``retry_backoff`` for each
    later one. ``attempt_timeout`` bounds how long the executor waits for
    a single attempt. A timed-out attempt cannot be stopped, so its run stays
    in flight and no further attempt starts; ``stale_after`` or
    ``jbs runs release`` clear it.

    Example:
        executor = JobExecutor(store)
        result = executor.execute(job, on_failure=alert)
    """

    def __init__(
        self,
        store: RunStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = 0.0,
        retry_backoff: float = 1.0,
        attempt_timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        """Initialize the job executor.

        Args:
            store: Run store to record attempts in
            max_attempts: Attempts per execution (at least 1)
            retry_delay: Seconds to wait before the second attempt
            retry_backoff: Multiplier applied to the delay per further attempt
            attempt_timeout: Seconds an attempt may run (None for no limit)
            clock: Returns the current time (defaults to UTC now)
            sleep: Sleep function used between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if retry_delay < 0 or retry_backoff < 0:
            raise ValueError("retry_delay and retry_backoff must not be negative")

        self._store = store
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.attempt_timeout = attempt_timeout
        self._clock = clock or utcnow
        self._sleep = sleep or time.sleep

    def now(self) -> datetime:
        """Current time in UTC."""
        return ensure_utc(self._clock())

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the given attempt number."""
        if attempt <= 1 or self.retry_delay <= 0:
            return 0.0
        return self.retry_delay * (self.retry_backoff ** (attempt - 2))

    def execute(
        self,
        job: Job,
        on_failure: Optional[FailureCallback] = None,
    ) -> JobExecutionResult:
        """Execute a job until one attempt succeeds or attempts run out.

        Args:
            job: The job to execute
            on_failure: Called with (job_id, output) after the last failed attempt

        Returns:
            Execution result with one entry per attempt

        Raises:
            StoreUnavailable: If attempts cannot be recorded
        """
        result = JobExecutionResult(job_id=job.job_id, started_at=self.now())

        for attempt in range(1, self.max_attempts + 1):
            delay = self.delay_before(attempt)
            if delay > 0:
                logger.debug(f"Waiting {delay:g}s before attempt {attempt} of {job.job_id}")
                self._sleep(delay)

            run_id = self._store.claim_run(job.job_id, self.now())
            if run_id is None:
                logger.info(f"Job {job.job_id} is already running, not starting attempt {attempt}")
                result.skipped = not result.attempts
                result.completed_at = self.now()
                return result

            outcome = self._attempt(job, attempt, run_id)
            result.attempts.append(outcome)

            if outcome.success:
                result.success = True
                result.completed_at = self.now()
                logger.info(f"Job {job.job_id} succeeded on attempt {attempt}")
                return result

            if outcome.timed_out:
                break

        result.completed_at = self.now()
        result.error = JobPermanentlyFailed(job.job_id, len(result.attempts), result.output)
        logger.error(f"Job {job.job_id} failed after {len(result.attempts)} attempts")
        self._notify_failure(on_failure, job.job_id, result.output)
        return result

    def _attempt(self, job: Job, attempt: int, run_id: int) -> AttemptResult:
        """Run one attempt and record its outcome."""
        buffer = io.StringIO()
        try:
            with redirect_stdout(buffer):
                value = self._call(job.work)
        except AttemptTimeout as e:
            # The work is still running, so the run stays in flight
            output = _join_output(buffer.getvalue(), f"Exception: {e}")
            logger.error(
                f"Job {job.job_id} attempt {attempt} timed out; run {run_id} stays in flight "
                f"until released"
            )
            return AttemptResult(
                attempt=attempt,
                run_id=run_id,
                success=False,
                output=output,
                error=JobAttemptFailed(job.job_id, attempt, e),
                timed_out=True,
            )
        except Exception as e:
            output = _join_output(buffer.getvalue(), f"Exception: {e}")
            self._store.complete_run(run_id, self.now(), RunStatus.FAILED, output)
            logger.warning(f"Job {job.job_id} attempt {attempt}/{self.max_attempts} failed: {e}")
            return AttemptResult(
                attempt=attempt,
                run_id=run_id,
                success=False,
                output=output,
                error=JobAttemptFailed(job.job_id, attempt, e),
            )
        except (KeyboardInterrupt, SystemExit) as e:
            # Leave no in-flight row behind, or the job stays blocked
            output = _join_output(buffer.getvalue(), f"Interrupted: {type(e).__name__}")
            self._store.complete_run(run_id, self.now(), RunStatus.FAILED, output)
            raise

        output = _join_output(buffer.getvalue(), "" if value is None else str(value))
        self._store.complete_run(run_id, self.now(), RunStatus.SUCCESS, output)
        return AttemptResult(attempt=attempt, run_id=run_id, success=True, output=output)

    def _call(self, work: WorkFunction) -> Any:
        """Call the work function, enforcing the attempt timeout if set."""
        if not self.attempt_timeout:
            return work()

        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["value"] = work()
            except BaseException as e:
                outcome["error"] = e

        # A hung attempt must not hold up interpreter exit
        thread = threading.Thread(target=target, name="jbs-attempt", daemon=True)
        thread.start()
        thread.join(self.attempt_timeout)
        if thread.is_alive():
            raise AttemptTimeout(self.attempt_timeout)
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("value")

    def _notify_failure(
        self,
        callback: Optional[FailureCallback],
        job_id: str,
        output: str,
    ) -> None:
        if callback is None:
            return
        try:
            callback(job_id, output)
        except Exception:
            logger.exception(f"Failure callback raised for job {job_id}")
