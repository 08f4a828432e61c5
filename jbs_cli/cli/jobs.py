"""JBS job commands - Dispatch passes, manual runs and job listings."""

import logging
import time
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from jbs_cli.cli.error_handler import NotFoundError, handle_errors
from jbs_cli.cli.exit_codes import ExitCode
from jbs_cli.cli.output import (
    format_timestamp,
    print_json,
    print_result,
    print_table,
)
from jbs_cli.scheduler import DispatchReport, JobExecutionResult, Scheduler, load_tasks

console = Console()
logger = logging.getLogger(__name__)

TASKS_FILE_ARGUMENT = typer.Argument(
    ...,
    help="Python file that registers the jobs.",
    dir_okay=False,
    resolve_path=True,
)

DB_OPTION = typer.Option(
    None,
    "--db",
    help="Run store location (file path, :memory: or sqlite: URL). Defaults to the configured database.",
)


def open_scheduler(tasks_file: Path, db: Optional[str] = None) -> Scheduler:
    """Load a task file and build a scheduler from configuration.

    Args:
        tasks_file: Python file that registers the jobs
        db: Optional run store location overriding the configuration

    Returns:
        Scheduler holding the task file's jobs
    """
    from jbs_cli.config import get_config

    registry = load_tasks(tasks_file)
    overrides: dict[str, Any] = {}
    if db:
        overrides["store"] = db
    return Scheduler.from_config(get_config(), registry, **overrides)


def _is_json() -> bool:
    from jbs_cli.main import is_json

    return is_json()


def _is_quiet() -> bool:
    from jbs_cli.main import is_quiet

    return is_quiet()


def execution_to_dict(result: JobExecutionResult) -> dict[str, Any]:
    """Convert an execution result to a JSON-friendly dictionary."""
    return {
        "job_id": result.job_id,
        "success": result.success,
        "attempts": len(result.attempts),
        "run_ids": result.run_ids,
        "started_at": format_timestamp(result.started_at),
        "completed_at": format_timestamp(result.completed_at),
        "output": result.output,
    }


def report_to_dict(report: DispatchReport) -> dict[str, Any]:
    """Convert a dispatch report to a JSON-friendly dictionary."""
    return {
        "started_at": format_timestamp(report.started_at),
        "completed_at": format_timestamp(report.completed_at),
        "executed": report.executed,
        "failed": report.failed,
        "skipped_running": report.skipped_running,
        "not_due": report.not_due,
        "released": report.released,
        "swept": report.swept,
        "sweep_error": str(report.sweep_error) if report.sweep_error else None,
        "executions": [execution_to_dict(e) for e in report.executions],
    }


def _print_report(report: DispatchReport) -> None:
    if _is_json():
        print_json(report_to_dict(report))
        return
    if _is_quiet():
        return

    if not report.executions:
        console.print("[dim]No jobs were due.[/dim]")

    for execution in report.executions:
        attempts = len(execution.attempts)
        if execution.success:
            print_result(True, f"{execution.job_id} succeeded", {"attempts": attempts})
        else:
            print_result(
                False,
                f"{execution.job_id} failed",
                {"attempts": attempts, "output": execution.output or None},
            )

    if report.skipped_running:
        console.print(f"[yellow]In flight:[/yellow] {', '.join(report.skipped_running)}")
    if report.released:
        console.print(f"[yellow]Released {report.released} stale runs[/yellow]")
    if report.swept:
        console.print(f"[dim]Swept {report.swept} expired runs[/dim]")
    if report.sweep_error:
        console.print(f"[red]Retention sweep failed:[/red] {report.sweep_error}")


@handle_errors
def run(
    tasks_file: Path = TASKS_FILE_ARGUMENT,
    db: Optional[str] = DB_OPTION,
    watch: Optional[float] = typer.Option(
        None,
        "--watch",
        "-w",
        help="Repeat the pass every N seconds until interrupted.",
        min=0.1,
    ),
) -> None:
    """Run every due job once, then sweep expired runs.

    Meant to be called from cron. Exits with code 3 when a job failed on
    every attempt.

    Example:
        jbs run tasks.py
        jbs run tasks.py --db ./jobs.sqlite
        jbs run tasks.py --watch 30
    """
    scheduler = open_scheduler(tasks_file, db)

    if watch is None:
        report = scheduler.run()
        _print_report(report)
        if report.failed:
            raise typer.Exit(code=ExitCode.JOB_FAILED)
        return

    console.print(f"[bold]Dispatching every {watch:g}s[/bold] [dim](Ctrl+C to stop)[/dim]")
    try:
        while True:
            _print_report(scheduler.run())
            time.sleep(watch)
    except KeyboardInterrupt:
        logger.info("Watch loop stopped")
        console.print("\n[yellow]Stopped.[/yellow]")
    finally:
        scheduler.store.close()


@handle_errors
def run_job(
    tasks_file: Path = TASKS_FILE_ARGUMENT,
    job_id: str = typer.Argument(..., help="ID of the job to run now."),
    db: Optional[str] = DB_OPTION,
) -> None:
    """Run one job now, ignoring its schedule.

    This is how manual-only jobs run. The in-flight guard still applies.

    Example:
        jbs run-job tasks.py rebuild-index
    """
    scheduler = open_scheduler(tasks_file, db)

    if job_id not in scheduler.registry:
        raise NotFoundError(
            f"Job not registered: {job_id}",
            details={"available": ", ".join(j.job_id for j in scheduler.jobs) or "none"},
        )

    result = scheduler.run_job(job_id)
    if result is None:
        console.print(f"[yellow]Job {job_id} already has an attempt in flight, not started.[/yellow]")
        raise typer.Exit(code=ExitCode.JOB_RUNNING)

    if _is_json():
        print_json(execution_to_dict(result))
    else:
        print_result(
            result.success,
            f"{job_id} {'succeeded' if result.success else 'failed'}",
            {"attempts": len(result.attempts), "output": result.output or None},
        )

    if not result.success:
        raise typer.Exit(code=ExitCode.JOB_FAILED)


@handle_errors
def list_jobs(
    tasks_file: Path = TASKS_FILE_ARGUMENT,
    db: Optional[str] = DB_OPTION,
) -> None:
    """List registered jobs with their last run and next due time.

    Example:
        jbs jobs tasks.py
    """
    scheduler = open_scheduler(tasks_file, db)

    rows = []
    for job in scheduler.jobs:
        last = scheduler.last_run(job.job_id)
        next_due = scheduler.next_due(job)
        rows.append({
            "job_id": job.job_id,
            "schedule": job.schedule_label,
            "last_run": format_timestamp(last.scheduled_at) if last else "never",
            "last_status": last.status if last else "",
            "next_due": format_timestamp(next_due) if next_due else "manual",
            "running": scheduler.is_running(job.job_id),
        })

    if _is_json():
        print_json(rows)
        return

    if not rows:
        console.print("[dim]No jobs registered.[/dim]")
        return

    print_table(
        rows,
        ["job_id", "schedule", "last_run", "last_status", "next_due", "running"],
        title="Jobs",
        column_styles={"job_id": "cyan", "schedule": "green"},
    )
