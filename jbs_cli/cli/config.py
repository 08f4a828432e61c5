"""JBS config command - Configuration management."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax

from jbs_cli.cli.error_handler import ConfigurationError, ValidationError, handle_errors
from jbs_cli.cli.exit_codes import ExitCode
from jbs_cli.cli.output import print_key_value, print_table

app = typer.Typer(help="Manage JBS configuration.")
console = Console()


def _config_file_path() -> Path:
    from jbs_cli.config import CONFIG_DIR, DEFAULT_CONFIG_FILE

    config_dir = Path(os.environ.get("JBS_CONFIG_DIR", CONFIG_DIR))
    return config_dir / DEFAULT_CONFIG_FILE


@app.command("show")
@handle_errors
def show_config(
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, yaml, json).",
    ),
    unmask: bool = typer.Option(
        False,
        "--unmask",
        help="Show credentials embedded in the database URL.",
    ),
) -> None:
    """Show current configuration.

    Example:
        jbs config show
        jbs config show --format yaml
    """
    from jbs_cli.config import _config_to_dict, export_config_json, export_config_yaml, get_config

    config = get_config()

    if format == "yaml":
        console.print(Syntax(export_config_yaml(config, mask_secrets=not unmask), "yaml", theme="monokai"))
        return
    if format == "json":
        console.print(Syntax(export_config_json(config, mask_secrets=not unmask), "json", theme="monokai"))
        return
    if format != "table":
        raise ValidationError(f"Unknown format: {format}", details={"choices": "table, yaml, json"})

    data = _config_to_dict(config, mask_secrets=not unmask)
    print_key_value(
        {
            "config_dir": data["config_dir"],
            "data_dir": data["data_dir"],
            "database_url": data["database_url"],
        },
        title="JBS Configuration",
    )
    for section in ("scheduler", "logging"):
        console.print()
        print_key_value(data[section], title=section.title())


@app.command("path")
def config_path() -> None:
    """Show configuration file path.

    Example:
        jbs config path
    """
    config_file_path = _config_file_path()
    console.print(f"[bold]Config directory:[/bold] {config_file_path.parent}")
    console.print(f"[bold]Config file:[/bold] {config_file_path}")
    console.print(f"[bold]Exists:[/bold] {config_file_path.exists()}")


@app.command("init")
@handle_errors
def init_config(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration.",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Run store file to record in the configuration.",
    ),
    retention: Optional[str] = typer.Option(
        None,
        "--retention",
        "-r",
        help="Retention window (e.g. 1w, 2d, 3600).",
    ),
) -> None:
    """Write a configuration file with default values.

    Example:
        jbs config init
        jbs config init --db ./jobs.sqlite --retention 2d
    """
    from jbs_cli.config import DEFAULT_DATA_DIR, JbsConfig, ensure_directories, save_config
    from jbs_cli.database.connection import database_url_for
    from jbs_cli.scheduler import parse_interval
    from jbs_cli.scheduler.interval import is_manual

    config_file_path = _config_file_path()
    if config_file_path.exists() and not force:
        raise ConfigurationError(
            f"Configuration already exists at {config_file_path}",
            details={"hint": "use --force to overwrite"},
        )

    data_dir = Path(os.environ.get("JBS_DATA_DIR", DEFAULT_DATA_DIR))
    config = JbsConfig(config_dir=config_file_path.parent, data_dir=data_dir)
    if db:
        config.database_url = database_url_for(db)
    if retention:
        seconds = parse_interval(retention)
        if is_manual(seconds):
            raise ValidationError(f"Not a retention window: {retention}")
        config.scheduler.retention = seconds

    ensure_directories(config)
    save_config(config, config_file_path)

    console.print(f"[green]✓[/green] Configuration written to {config_file_path}")
    console.print(f"  [dim]database_url:[/dim] {config.database_url}")


@app.command("validate")
def validate_config() -> None:
    """Validate current configuration.

    Example:
        jbs config validate
    """
    from jbs_cli.config import get_config, validate_config as do_validate

    config = get_config()
    config_file_path = _config_file_path()

    console.print("[bold]Validating configuration...[/bold]")
    console.print()

    if config_file_path.exists():
        console.print(f"  [green]✓[/green] Config file exists [dim]({config_file_path})[/dim]")
    else:
        console.print(f"  [yellow]![/yellow] No config file, using defaults [dim]({config_file_path})[/dim]")

    all_passed = True
    errors = do_validate(config)

    if errors:
        console.print()
        console.print("[bold yellow]Validation Results:[/bold yellow]")
        for error in errors:
            if error.severity == "error":
                status = "[red]✗[/red]"
                all_passed = False
            else:
                status = "[yellow]![/yellow]"
            console.print(f"  {status} {error}")

    console.print()
    if all_passed:
        console.print("[green]Configuration is valid[/green]")
    else:
        console.print("[red]Configuration has errors[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)


@app.command("env")
def show_env_vars() -> None:
    """Show supported environment variables.

    Example:
        jbs config env
    """
    console.print("[bold]Supported Environment Variables[/bold]")
    console.print()
    console.print("[dim]These environment variables override config file values:[/dim]")
    console.print()

    env_vars = [
        ("JBS_CONFIG_DIR", "Configuration directory path", "~/.config/jbs"),
        ("JBS_DATA_DIR", "Data directory path", "~/.local/share/jbs"),
        ("JBS_DATABASE_URL", "Run store database URL", "sqlite:///..."),
        ("JBS_DB", "Run store file path", "./jobs.sqlite or :memory:"),
        ("JBS_RETENTION", "Retention window for run records", "1w, 2d, 3600"),
        ("JBS_MAX_ATTEMPTS", "Attempts per job execution", "3"),
        ("JBS_RETRY_DELAY", "Seconds before the second attempt", "0, 5.0"),
        ("JBS_RETRY_BACKOFF", "Delay multiplier per further attempt", "1.0, 2.0"),
        ("JBS_ATTEMPT_TIMEOUT", "Seconds a single attempt may run", "300"),
        ("JBS_STALE_AFTER", "Release in-flight runs older than this", "1h, 3600"),
        ("JBS_LOG_LEVEL", "Logging level", "DEBUG/INFO/WARNING/ERROR"),
    ]

    print_table(
        [{"variable": v, "description": d, "example_value": e} for v, d, e in env_vars],
        ["variable", "description", "example_value"],
        column_styles={"variable": "cyan", "description": "white", "example_value": "green"},
    )
