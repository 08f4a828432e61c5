"""Exceptions raised by the scheduler and its run store."""

from __future__ import annotations

from typing import Any


class SchedulerError(Exception):
    """Base exception for scheduler errors."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.job_id = job_id

    def __str__(self) -> str:
        if self.job_id:
            return f"{self.message} (job: {self.job_id})"
        return self.message


class InvalidIntervalFormat(SchedulerError, ValueError):
    """Raised when a schedule string cannot be parsed into seconds."""

    def __init__(self, value: Any, job_id: str | None = None) -> None:
        super().__init__(f"Invalid interval format: {value!r}", job_id)
        self.value = value


class StoreUnavailable(SchedulerError):
    """Raised when the run store cannot be opened or queried.

    This is fatal for the current invocation: due decisions cannot be
    made without the store.
    """

    def __init__(self, message: str, database_url: str | None = None) -> None:
        super().__init__(message)
        self.database_url = database_url

    def __str__(self) -> str:
        if self.database_url:
            return f"{self.message} (database: {self.database_url})"
        return self.message


class JobAttemptFailed(SchedulerError):
    """A single attempt of a job raised. Recorded and retried, never propagated."""

    def __init__(self, job_id: str, attempt: int, cause: BaseException) -> None:
        super().__init__(f"Attempt {attempt} failed: {cause}", job_id)
        self.attempt = attempt
        self.cause = cause


class JobPermanentlyFailed(SchedulerError):
    """All attempts of a job execution were exhausted.

    Reported through the failure callback and attached to the execution
    result; never raised to the caller of ``run()``.
    """

    def __init__(self, job_id: str, attempts: int, output: str) -> None:
        super().__init__(f"Job failed after {attempts} attempts", job_id)
        self.attempts = attempts
        self.output = output


class AttemptTimeout(SchedulerError):
    """Raised inside the executor when an attempt exceeds its time limit."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"attempt timed out after {timeout:g}s")
        self.timeout = timeout


class TaskFileError(SchedulerError):
    """Raised when a task file cannot be loaded into a registry."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} (path: {self.path})"
        return self.message


class JobAlreadyRunning(SchedulerError):
    """Raised when a running row is inserted for a job that already has one."""

    def __init__(self, job_id: str) -> None:
        super().__init__("Job already has an attempt in flight", job_id)
