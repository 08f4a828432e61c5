"""Due-check and dispatch loop.

The Scheduler is meant to be invoked repeatedly by an external timer
(cron or similar) as a short-lived process. Each ``run()`` pass walks the
registry in order, skips jobs with an attempt in flight, executes the
ones that are due one at a time, then sweeps expired runs.

Scheduling state lives entirely in the run store, so a pass makes the
same decisions no matter which process ran the previous one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Union

from jbs_cli.database.models import Run, ensure_utc, utcnow
from jbs_cli.database.store import RunStore
from jbs_cli.exceptions import StoreUnavailable
from jbs_cli.scheduler.job_executor import (
    DEFAULT_MAX_ATTEMPTS,
    JobExecutionResult,
    JobExecutor,
)
from jbs_cli.scheduler.registry import FailureCallback, Job, JobRegistry, WorkFunction
from jbs_cli.scheduler.retention import DEFAULT_RETENTION, RetentionSweeper

if TYPE_CHECKING:
    from jbs_cli.config import JbsConfig

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "jobs.sqlite"


@dataclass
class DispatchReport:
    """Summary of one dispatch pass.

    Attributes:
        started_at: When the pass started
        completed_at: When the pass finished
        executions: Results of the jobs that were due, in run order
        skipped_running: Jobs skipped because an attempt was in flight
        not_due: Jobs checked and found not due
        released: Stale in-flight runs released before the pass
        swept: Runs deleted by the retention sweep
        sweep_error: Set if the retention sweep could not run
    """

    started_at: datetime
    completed_at: Optional[datetime] = None
    executions: List[JobExecutionResult] = field(default_factory=list)
    skipped_running: List[str] = field(default_factory=list)
    not_due: List[str] = field(default_factory=list)
    released: int = 0
    swept: int = 0
    sweep_error: Optional[StoreUnavailable] = None

    @property
    def executed(self) -> List[str]:
        """IDs of jobs executed during the pass."""
        return [e.job_id for e in self.executions if not e.skipped]

    @property
    def failed(self) -> List[str]:
        """IDs of jobs whose attempts were all exhausted."""
        return [e.job_id for e in self.executions if e.error is not None]


class Scheduler:
    """Runs due jobs from a registry against a durable run store.

    Example:
        registry = JobRegistry()
        registry.schedule("30s", "fetch-news", fetch_news)

        scheduler = Scheduler(registry, RunStore("./jobs.sqlite"))
        scheduler.run()               # typically from cron
        scheduler.run_job("fetch-news")

    The registration methods (``schedule``, ``on_failure``, ``clear``)
    are also available directly on the scheduler and act on its registry.
    """

    def __init__(
        self,
        registry: Optional[JobRegistry] = None,
        store: Union[RunStore, str, Path] = DEFAULT_DATABASE,
        retention: int = DEFAULT_RETENTION,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = 0.0,
        retry_backoff: float = 1.0,
        attempt_timeout: Optional[float] = None,
        stale_after: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            registry: Jobs to dispatch (a new empty registry if omitted)
            store: Run store, or a location to open one at
            retention: Seconds to keep run records
            max_attempts: Attempts per job execution
            retry_delay: Seconds to wait before the second attempt
            retry_backoff: Delay multiplier for each further attempt
            attempt_timeout: Seconds an attempt may run (None for no limit)
            stale_after: Release in-flight runs older than this many seconds
                at the start of each pass (None to never release)
            clock: Returns the current time (defaults to UTC now)
            sleep: Sleep function used between attempts

        Raises:
            StoreUnavailable: If the store cannot be opened
        """
        self.registry = registry if registry is not None else JobRegistry()
        self.store = store if isinstance(store, RunStore) else RunStore(store)
        self.stale_after = stale_after
        self._clock = clock or utcnow

        self._executor = JobExecutor(
            self.store,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            retry_backoff=retry_backoff,
            attempt_timeout=attempt_timeout,
            clock=self._clock,
            sleep=sleep,
        )
        self._sweeper = RetentionSweeper(self.store, retention, clock=self._clock)

    @classmethod
    def from_config(
        cls,
        config: Optional["JbsConfig"] = None,
        registry: Optional[JobRegistry] = None,
        **overrides: Any,
    ) -> "Scheduler":
        """Build a scheduler from configuration.

        Args:
            config: Configuration (the global configuration if omitted)
            registry: Jobs to dispatch
            **overrides: Keyword arguments that take precedence over config

        Returns:
            Configured scheduler
        """
        from jbs_cli.config import get_config

        if config is None:
            config = get_config()

        settings = config.scheduler
        options: dict[str, Any] = {
            "store": config.database_url,
            "retention": settings.retention,
            "max_attempts": settings.max_attempts,
            "retry_delay": settings.retry_delay,
            "retry_backoff": settings.retry_backoff,
            "attempt_timeout": settings.attempt_timeout,
            "stale_after": settings.stale_after,
        }
        options.update(overrides)
        return cls(registry, **options)

    @property
    def executor(self) -> JobExecutor:
        """The executor used for due and manual runs."""
        return self._executor

    @property
    def sweeper(self) -> RetentionSweeper:
        """The retention sweeper run after each pass."""
        return self._sweeper

    @property
    def jobs(self) -> List[Job]:
        """All registered jobs."""
        return self.registry.jobs

    def now(self) -> datetime:
        """Current time in UTC."""
        return ensure_utc(self._clock())

    # Registration API

    def schedule(self, interval: Any, job_id: str, work: WorkFunction) -> Job:
        """Register a job. See JobRegistry.schedule."""
        return self.registry.schedule(interval, job_id, work)

    def on_failure(self, callback: FailureCallback) -> None:
        """Set the failure callback. See JobRegistry.on_failure."""
        self.registry.on_failure(callback)

    def clear(self) -> None:
        """Remove all registered jobs."""
        self.registry.clear()

    # Due checks

    def last_run(self, job_id: str) -> Optional[Run]:
        """Most recent run of a job."""
        return self.store.last_run(job_id)

    def is_running(self, job_id: str) -> bool:
        """Check if a job has an attempt in flight."""
        return self.store.is_running(job_id)

    def next_due(self, job: Job) -> Optional[datetime]:
        """When the job next becomes due.

        Returns:
            None for manual jobs, the current time for jobs that never
            ran, otherwise the last scheduled_at plus the interval
        """
        if job.is_manual:
            return None
        last = self.store.last_run(job.job_id)
        if last is None:
            return self.now()
        return last.scheduled_at + timedelta(seconds=job.interval)

    def is_due(self, job: Job) -> bool:
        """Check if a job should run now.

        Jobs that never ran are due immediately.
        """
        due_at = self.next_due(job)
        if due_at is None:
            return False
        return self.now() >= due_at

    # Dispatch

    def run(self) -> DispatchReport:
        """Run every due job once, then sweep expired runs.

        Jobs run in registration order, one at a time. A job that fails
        all its attempts does not stop the pass.

        Returns:
            Report of what happened during the pass

        Raises:
            StoreUnavailable: If the store fails before or while running jobs
        """
        report = DispatchReport(started_at=self.now())

        if self.stale_after is not None:
            cutoff = report.started_at - timedelta(seconds=self.stale_after)
            report.released = self.store.release_stale(cutoff, report.started_at)

        for job in self.registry.scheduled_jobs:
            if self.store.is_running(job.job_id):
                logger.debug(f"Skipping {job.job_id}: an attempt is in flight")
                report.skipped_running.append(job.job_id)
                continue

            if not self.is_due(job):
                logger.debug(f"Skipping {job.job_id}: not due")
                report.not_due.append(job.job_id)
                continue

            logger.info(f"Running job {job.job_id}")
            execution = self._executor.execute(job, self.registry.failure_callback)
            if execution.skipped:
                report.skipped_running.append(job.job_id)
            else:
                report.executions.append(execution)

        try:
            report.swept = self._sweeper.sweep()
        except StoreUnavailable as e:
            logger.error(f"Retention sweep failed: {e}")
            report.sweep_error = e

        report.completed_at = self.now()
        logger.info(
            f"Dispatch pass finished: {len(report.executed)} executed, "
            f"{len(report.failed)} failed, {len(report.skipped_running)} in flight, "
            f"{len(report.not_due)} not due"
        )
        return report

    def run_job(self, job_id: str) -> Optional[JobExecutionResult]:
        """Run a job now, ignoring its schedule.

        This is the only way manual-only jobs execute. The in-flight
        guard still applies.

        Args:
            job_id: ID of the job to run

        Returns:
            Execution result, or None if the job is unknown or already running
        """
        job = self.registry.get(job_id)
        if job is None:
            logger.warning(f"Job not registered: {job_id}")
            return None

        if self.store.is_running(job_id):
            logger.info(f"Not running {job_id}: an attempt is in flight")
            return None

        result = self._executor.execute(job, self.registry.failure_callback)
        if result.skipped:
            return None
        return result

    def sweep(self) -> int:
        """Delete runs older than the retention window."""
        return self._sweeper.sweep()
