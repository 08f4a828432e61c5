"""Output formatting utilities for the JBS CLI.

This module provides standardized output formatting for tables, key-value
listings and operation results, in both human-readable and JSON form.
"""

import json
from typing import Any, Dict, List
from datetime import datetime

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.json import JSON as RichJSON

# Default console for output
console = Console()


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as formatted JSON.

    Args:
        data: Data to print (must be JSON-serializable)
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    json_str = json.dumps(data, indent=2, default=str)
    prog_console.print(RichJSON(json_str))


def print_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: str | None = None,
    column_styles: Dict[str, str] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print data as a formatted table.

    Args:
        data: List of dictionaries containing row data
        columns: List of column keys to display
        title: Optional table title
        column_styles: Optional dict mapping column names to Rich styles
        console_instance: Optional custom console instance

    Example:
        data = [
            {"job_id": "fetch-news", "schedule": "30s", "running": False},
            {"job_id": "rebuild-index", "schedule": "manual", "running": True},
        ]
        print_table(data, ["job_id", "schedule", "running"], title="Jobs")
    """
    prog_console = console_instance or console
    column_styles = column_styles or {}

    table = Table(title=title)

    for col in columns:
        style = column_styles.get(col)
        header = col.replace("_", " ").title()
        table.add_column(header, style=style)

    for row in data:
        values = []
        for col in columns:
            value = row.get(col, "")
            if value is None:
                value = ""
            elif isinstance(value, bool):
                value = "[green]Yes[/green]" if value else "[red]No[/red]"
            elif isinstance(value, datetime):
                value = format_timestamp(value)
            values.append(str(value))

        table.add_row(*values)

    prog_console.print(table)


def print_result(
    success: bool,
    message: str,
    details: Dict[str, Any] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print operation result with appropriate styling.

    Args:
        success: Whether the operation succeeded
        message: Result message
        details: Optional dictionary of additional details
        console_instance: Optional custom console instance

    Example:
        print_result(True, "fetch-news succeeded", {"attempts": 1})
        print_result(False, "flaky failed", {"output": "Exception: boom"})
    """
    prog_console = console_instance or console

    icon = "[green]✓[/green]" if success else "[red]✗[/red]"
    prog_console.print(f"{icon} {message}")

    if details:
        for key, value in details.items():
            if value is not None:
                prog_console.print(f"  [dim]{key}:[/dim] {value}")


def print_key_value(
    data: Dict[str, Any],
    title: str | None = None,
    key_style: str = "cyan",
    console_instance: Console | None = None,
) -> None:
    """Print data as key-value pairs.

    Args:
        data: Dictionary of key-value pairs
        title: Optional title
        key_style: Style for keys
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    if title:
        prog_console.print(f"[bold]{title}[/bold]")
        prog_console.print()

    max_key_len = max(len(str(k)) for k in data.keys()) if data else 0

    for key, value in data.items():
        if isinstance(value, bool):
            formatted = "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, (int, float)):
            formatted = f"[yellow]{value}[/yellow]"
        elif isinstance(value, datetime):
            formatted = format_timestamp(value)
        else:
            formatted = str(value) if value is not None else "[dim]N/A[/dim]"

        padded_key = str(key).ljust(max_key_len)
        prog_console.print(f"  [{key_style}]{padded_key}[/{key_style}] : {formatted}")


def print_panel(
    content: str,
    title: str | None = None,
    style: str = "blue",
    console_instance: Console | None = None,
) -> None:
    """Print content in a bordered panel.

    Args:
        content: Text to display
        title: Optional panel title
        style: Border style
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console
    prog_console.print(Panel(content, title=title, border_style=style))


def format_timestamp(value: datetime | None) -> str:
    """Format a timestamp the way the run store records it."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Human-readable duration string

    Example:
        format_duration(90)  # Returns "1m 30s"
        format_duration(3661)  # Returns "1h 1m"
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
