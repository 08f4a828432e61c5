"""In-memory job registry.

A JobRegistry maps job ids to their schedule and work function. It is
rebuilt by every process invocation and never persisted; only the runs
it produces are.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from jbs_cli.scheduler.interval import Interval, ManualOnly, format_interval, parse_interval
from jbs_cli.exceptions import InvalidIntervalFormat

logger = logging.getLogger(__name__)

WorkFunction = Callable[[], Any]
FailureCallback = Callable[[str, str], Any]


@dataclass
class Job:
    """A registered unit of work.

    Attributes:
        job_id: Unique identifier within the registry
        interval: Seconds between runs, or MANUAL
        work: Zero-argument callable; raising signals failure
    """

    job_id: str
    interval: Interval
    work: WorkFunction

    @property
    def is_manual(self) -> bool:
        """Check if the job only runs on explicit request."""
        return isinstance(self.interval, ManualOnly)

    @property
    def schedule_label(self) -> str:
        """Human-readable schedule."""
        return format_interval(self.interval)


class JobRegistry:
    """Registry of jobs and the failure callback.

    Example:
        registry = JobRegistry()
        registry.schedule("30s", "fetch-news", fetch_news)
        registry.schedule(MANUAL, "rebuild-index", rebuild_index)
        registry.on_failure(lambda job_id, output: alert(job_id, output))
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._failure_callback: Optional[FailureCallback] = None

    def schedule(self, interval: Any, job_id: str, work: WorkFunction) -> Job:
        """Register a job, replacing any job with the same id.

        Args:
            interval: Interval spec ("30s", "1h", 90, ...) or MANUAL/False
            job_id: Unique identifier for the job
            work: Zero-argument callable to execute

        Returns:
            The registered job

        Raises:
            InvalidIntervalFormat: If the interval cannot be parsed
        """
        if not callable(work):
            raise TypeError(f"Work for job {job_id!r} is not callable")

        try:
            seconds = parse_interval(interval)
        except InvalidIntervalFormat as e:
            e.job_id = job_id
            raise

        # A replaced job keeps its original position in the dispatch order
        if job_id in self._jobs:
            logger.debug(f"Replacing job {job_id}")

        job = Job(job_id=job_id, interval=seconds, work=work)
        self._jobs[job_id] = job

        logger.debug(f"Scheduled job {job_id} ({job.schedule_label})")
        return job

    def on_failure(self, callback: FailureCallback) -> None:
        """Set the callback invoked once a job exhausts its attempts.

        Args:
            callback: Receives the job id and the output of the final attempt
        """
        self._failure_callback = callback

    @property
    def failure_callback(self) -> Optional[FailureCallback]:
        """The registered failure callback, if any."""
        return self._failure_callback

    def get(self, job_id: str) -> Optional[Job]:
        """Get a job by id."""
        return self._jobs.get(job_id)

    def clear(self) -> None:
        """Remove all registered jobs."""
        self._jobs.clear()

    @property
    def jobs(self) -> List[Job]:
        """All jobs in registration order."""
        return list(self._jobs.values())

    @property
    def scheduled_jobs(self) -> List[Job]:
        """Jobs that the dispatch pass considers (non-manual)."""
        return [job for job in self._jobs.values() if not job.is_manual]

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(self.jobs)

    def __len__(self) -> int:
        return len(self._jobs)
