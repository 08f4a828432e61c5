"""CLI command modules for JBS.

This package contains the command implementations and the supporting
utilities for error handling, exit codes and output formatting.
"""

from jbs_cli.cli import config, jobs, runs
from jbs_cli.cli.exit_codes import ExitCode
from jbs_cli.cli.error_handler import (
    JbsError,
    ConfigurationError,
    StorageError,
    ValidationError,
    NotFoundError,
    handle_errors,
)

__all__ = [
    # Command modules
    "config",
    "jobs",
    "runs",
    # Exit codes
    "ExitCode",
    # Error handling
    "JbsError",
    "ConfigurationError",
    "StorageError",
    "ValidationError",
    "NotFoundError",
    "handle_errors",
]
