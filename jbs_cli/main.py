"""Main CLI entry point for JBS."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from jbs_cli import __app_name__, __version__
from jbs_cli.cli import config, jobs, runs
from jbs_cli.cli.exit_codes import ExitCode

# Create the main Typer app
app = typer.Typer(
    name=__app_name__,
    help="JBS - Persistent job scheduler with bounded retry.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for CLI output
console = Console()

# Register commands
app.command("run")(jobs.run)
app.command("run-job")(jobs.run_job)
app.command("jobs")(jobs.list_jobs)
app.add_typer(runs.app, name="runs")
app.add_typer(config.app, name="config")

# Global state for CLI options
_global_state: dict[str, bool] = {
    "verbose": False,
    "debug": False,
    "json": False,
    "quiet": False,
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Set up logging configuration based on CLI options.

    Without any flag the console level comes from the configured
    ``logging.level`` (``JBS_LOG_LEVEL``).

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        quiet: Suppress non-error output
        log_file: Optional log file path (defaults to the configured file)
    """
    from jbs_cli.config import get_config

    logging_config = get_config().logging

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(logging_config.level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    if debug:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    else:
        format_str = logging_config.format

    handlers: list[logging.Handler] = []

    log_file = log_file or logging_config.file
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        handlers.append(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)
    elif not log_file:
        # In quiet mode without log file, add null handler to prevent warnings
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format=format_str,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, debug={debug}")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output (INFO level logging).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (DEBUG level logging).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format where applicable.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log to file (logs DEBUG level regardless of console settings).",
    ),
) -> None:
    """JBS - Persistent job scheduler with bounded retry.

    Jobs are registered in a Python task file. Every invocation is a
    short-lived process; what ran and when is kept in a SQLite run store.

    [bold]Core Commands:[/bold]

    • [cyan]run[/cyan] - Run every due job once (call it from cron)
    • [cyan]run-job[/cyan] - Run one job now, including manual-only jobs
    • [cyan]jobs[/cyan] - List registered jobs and when they are due
    • [cyan]runs[/cyan] - Inspect, sweep and release run records
    • [cyan]config[/cyan] - Manage configuration

    [bold]Examples:[/bold]

        jbs run tasks.py
        jbs run-job tasks.py rebuild-index
        jbs runs list --status failed

    For more help on a specific command, use: [cyan]jbs <command> --help[/cyan]
    """
    _global_state["verbose"] = verbose
    _global_state["debug"] = debug
    _global_state["json"] = json_output
    _global_state["quiet"] = quiet

    if quiet and verbose:
        console.print("[red]Error:[/red] --quiet and --verbose are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    if quiet and debug:
        console.print("[red]Error:[/red] --quiet and --debug are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    _setup_logging(verbose=verbose, debug=debug, quiet=quiet, log_file=log_file)

    logger = logging.getLogger(__name__)
    logger.debug(f"JBS v{__version__} starting")
    logger.debug(f"Options: verbose={verbose}, debug={debug}, json={json_output}, quiet={quiet}")


def is_json() -> bool:
    """Check if JSON output mode is enabled.

    Returns:
        True if JSON output is requested
    """
    return _global_state.get("json", False)


def is_quiet() -> bool:
    """Check if quiet mode is enabled.

    Returns:
        True if quiet mode is enabled
    """
    return _global_state.get("quiet", False)


__all__ = [
    "app",
    "console",
    "is_json",
    "is_quiet",
]


if __name__ == "__main__":
    app()
