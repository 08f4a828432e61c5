"""Persistent job scheduler.

Jobs are registered in a JobRegistry, checked for being due by the
Scheduler on every dispatch pass, and executed with bounded retry by the
JobExecutor. Every attempt is recorded in the run store, which is the only
state shared between invocations.
"""

from jbs_cli.exceptions import (
    InvalidIntervalFormat,
    JobAlreadyRunning,
    JobAttemptFailed,
    JobPermanentlyFailed,
    SchedulerError,
    StoreUnavailable,
    TaskFileError,
)
from jbs_cli.scheduler.interval import MANUAL, format_interval, parse_interval
from jbs_cli.scheduler.job_executor import AttemptResult, JobExecutionResult, JobExecutor
from jbs_cli.scheduler.job_scheduler import DispatchReport, Scheduler
from jbs_cli.scheduler.loader import load_tasks
from jbs_cli.scheduler.registry import Job, JobRegistry
from jbs_cli.scheduler.retention import RetentionSweeper

__all__ = [
    "AttemptResult",
    "DispatchReport",
    "InvalidIntervalFormat",
    "Job",
    "JobAlreadyRunning",
    "JobAttemptFailed",
    "JobExecutionResult",
    "JobExecutor",
    "JobPermanentlyFailed",
    "JobRegistry",
    "MANUAL",
    "RetentionSweeper",
    "Scheduler",
    "SchedulerError",
    "StoreUnavailable",
    "TaskFileError",
    "format_interval",
    "load_tasks",
    "parse_interval",
]
