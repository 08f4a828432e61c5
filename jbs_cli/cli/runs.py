"""JBS runs command - Inspect and maintain run records."""

from contextlib import contextmanager
from typing import Generator, Optional

import typer
from rich.console import Console

from jbs_cli.cli.error_handler import NotFoundError, ValidationError, handle_errors
from jbs_cli.cli.output import (
    format_duration,
    print_json,
    print_key_value,
    print_panel,
    print_result,
    print_table,
)
from jbs_cli.database import RunStatus, RunStore
from jbs_cli.database.models import utcnow
from jbs_cli.scheduler import RetentionSweeper, parse_interval
from jbs_cli.scheduler.interval import format_interval, is_manual

app = typer.Typer(help="Inspect and maintain run records.")
console = Console()

DB_OPTION = typer.Option(
    None,
    "--db",
    help="Run store location (file path, :memory: or sqlite: URL). Defaults to the configured database.",
)

STATUS_STYLES = {
    RunStatus.RUNNING.value: "[yellow]running[/yellow]",
    RunStatus.SUCCESS.value: "[green]success[/green]",
    RunStatus.FAILED.value: "[red]failed[/red]",
}


@contextmanager
def open_store(db: Optional[str] = None) -> Generator[RunStore, None, None]:
    """Open the run store named on the command line or in configuration."""
    from jbs_cli.config import get_config

    store = RunStore(db or get_config().database_url)
    try:
        yield store
    finally:
        store.close()


def _is_json() -> bool:
    from jbs_cli.main import is_json

    return is_json()


@app.command("list")
@handle_errors
def list_runs(
    job: Optional[str] = typer.Option(
        None,
        "--job",
        "-j",
        help="Only show runs of this job.",
    ),
    status: Optional[RunStatus] = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status.",
        case_sensitive=False,
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-l",
        help="Number of runs to show.",
        min=1,
    ),
    db: Optional[str] = DB_OPTION,
) -> None:
    """List recent runs, newest first.

    Example:
        jbs runs list
        jbs runs list --job fetch-news --status failed --limit 5
    """
    with open_store(db) as store:
        runs = store.list_runs(job_id=job, status=status, limit=limit)
        total = store.count_runs(job_id=job, status=status)

    if _is_json():
        print_json([run.to_dict() for run in runs])
        return

    if not runs:
        console.print("[dim]No runs recorded.[/dim]")
        return

    rows = []
    for run in runs:
        rows.append({
            "id": run.id,
            "job_id": run.job_id,
            "scheduled_at": run.scheduled_at,
            "executed_at": run.executed_at,
            "duration": format_duration(run.duration) if run.duration is not None else "",
            "status": STATUS_STYLES.get(run.status, run.status),
        })

    print_table(
        rows,
        ["id", "job_id", "scheduled_at", "executed_at", "duration", "status"],
        title=f"Runs ({len(runs)} of {total})",
        column_styles={"id": "dim", "job_id": "cyan"},
    )


@app.command("show")
@handle_errors
def show_run(
    run_id: int = typer.Argument(..., help="ID of the run to show."),
    db: Optional[str] = DB_OPTION,
) -> None:
    """Show a single run including its output.

    Example:
        jbs runs show 42
    """
    with open_store(db) as store:
        run = store.get_run(run_id)

    if run is None:
        raise NotFoundError(f"Run not found: {run_id}")

    if _is_json():
        print_json(run.to_dict())
        return

    print_key_value(
        {
            "ID": run.id,
            "Job": run.job_id,
            "Status": STATUS_STYLES.get(run.status, run.status),
            "Scheduled": run.scheduled_at,
            "Executed": run.executed_at,
            "Duration": format_duration(run.duration) if run.duration is not None else None,
        },
        title=f"Run {run.id}",
    )
    if run.output:
        console.print()
        print_panel(run.output, title="Output", style="red" if run.status == RunStatus.FAILED.value else "blue")


@app.command("sweep")
@handle_errors
def sweep_runs(
    retention: Optional[str] = typer.Option(
        None,
        "--retention",
        "-r",
        help="Retention window (e.g. 1w, 2d, 3600). Defaults to the configured retention.",
    ),
    db: Optional[str] = DB_OPTION,
) -> None:
    """Delete runs older than the retention window.

    Example:
        jbs runs sweep
        jbs runs sweep --retention 2d
    """
    from jbs_cli.config import get_config

    if retention is None:
        seconds = get_config().scheduler.retention
    else:
        seconds = parse_interval(retention)
        if is_manual(seconds):
            raise ValidationError(f"Not a retention window: {retention}")

    with open_store(db) as store:
        deleted = RetentionSweeper(store, seconds).sweep()

    if _is_json():
        print_json({"deleted": deleted, "retention": seconds})
        return

    print_result(True, f"Deleted {deleted} runs older than {format_interval(seconds)}")


@app.command("release")
@handle_errors
def release_job(
    job_id: str = typer.Argument(..., help="Job whose in-flight runs to release."),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation prompt.",
    ),
    db: Optional[str] = DB_OPTION,
) -> None:
    """Mark a job's in-flight runs as failed so it can run again.

    Use this after a process died mid-attempt. Releasing an attempt that
    is still alive lets a second one start alongside it.

    Example:
        jbs runs release fetch-news
        jbs runs release fetch-news --force
    """
    with open_store(db) as store:
        if not store.is_running(job_id):
            raise NotFoundError(f"Job {job_id} has no run in flight")

        if not force:
            confirm = typer.confirm(f"Release in-flight runs of '{job_id}'?")
            if not confirm:
                raise typer.Abort()

        released = store.release_job(job_id, utcnow())

    if _is_json():
        print_json({"job_id": job_id, "released": released})
        return

    print_result(True, f"Released {released} runs of {job_id}")
