"""Global exception handling for the JBS CLI.

This module provides the CLI-side exception classes and a decorator that
turns both these and the scheduler's own exceptions into consistent
error messages and exit codes.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from jbs_cli.cli.exit_codes import ExitCode
from jbs_cli.exceptions import (
    InvalidIntervalFormat,
    JobAlreadyRunning,
    SchedulerError,
    StoreUnavailable,
    TaskFileError,
)

# Console for error output (stderr)
console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class JbsError(Exception):
    """Base exception for the JBS CLI.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            exit_code: Optional override for exit code
            details: Optional dictionary of additional error details
        """
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(JbsError):
    """Configuration-related error.

    Examples:
        - Invalid configuration file
        - Task file missing or defining no jobs
    """

    exit_code = ExitCode.CONFIGURATION_ERROR


class StorageError(JbsError):
    """Run store error (cannot open, locked, corrupt)."""

    exit_code = ExitCode.STORAGE_ERROR


class ValidationError(JbsError):
    """Validation error for user input."""

    exit_code = ExitCode.INVALID_ARGUMENT


class NotFoundError(JbsError):
    """Requested job or run does not exist."""

    exit_code = ExitCode.NOT_FOUND


def to_cli_error(error: SchedulerError) -> JbsError:
    """Convert a scheduler exception into its CLI counterpart.

    Args:
        error: Exception raised by the scheduler or run store

    Returns:
        CLI error carrying the matching exit code
    """
    details: dict[str, Any] = {}
    if error.job_id:
        details["job"] = error.job_id

    if isinstance(error, StoreUnavailable):
        if error.database_url:
            details["database"] = error.database_url
        return StorageError(error.message, details=details)
    if isinstance(error, InvalidIntervalFormat):
        return ValidationError(error.message, details=details)
    if isinstance(error, TaskFileError):
        if error.path:
            details["path"] = error.path
        return ConfigurationError(error.message, details=details)
    if isinstance(error, JobAlreadyRunning):
        return JbsError(error.message, exit_code=ExitCode.JOB_RUNNING, details=details)
    return JbsError(error.message, details=details)


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    Handles:

    - JbsError subclasses: Display error message with appropriate exit code
    - SchedulerError subclasses: Converted with to_cli_error first
    - KeyboardInterrupt: Show cancellation message with exit code 130
    - Other exceptions: Show generic error with option for verbose details

    Args:
        func: The function to wrap

    Returns:
        Wrapped function with error handling

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Invalid config")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            try:
                return func(*args, **kwargs)
            except SchedulerError as e:
                raise to_cli_error(e) from e
        except JbsError as e:
            logger.error(
                f"JbsError: {e.message}",
                extra={"exit_code": e.exit_code, "details": e.details},
            )

            console.print(f"[red]Error:[/red] {e.message}")

            if e.details:
                for key, value in e.details.items():
                    console.print(f"  [dim]{key}:[/dim] {value}")

            raise typer.Exit(code=e.exit_code)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except (typer.Exit, typer.Abort):
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")

            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --verbose for more details[/dim]")

            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
