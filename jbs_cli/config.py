"""
JBS Configuration Management.

Handles loading, saving, and validating configuration from various sources:
- Default values
- Configuration file (TOML)
- Environment variables
- Command-line arguments
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import tomli_w
import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from jbs_cli.database.connection import database_url_for, get_db_path, is_memory_url
from jbs_cli.exceptions import InvalidIntervalFormat
from jbs_cli.scheduler.interval import is_manual, parse_interval

# Configuration directory and file constants
CONFIG_DIR = Path.home() / ".config" / "jbs"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "jbs"
DEFAULT_DATABASE_FILE = "jobs.sqlite"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class SchedulerConfig:
    """Configuration for the job scheduler."""

    # Retention window for run records, in seconds (one week)
    retention: int = 604800

    # Retry
    max_attempts: int = 3
    retry_delay: float = 0.0  # seconds before the second attempt
    retry_backoff: float = 1.0

    # Limits (None means no limit)
    attempt_timeout: Optional[float] = None
    stale_after: Optional[int] = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class JbsConfig:
    """Main configuration container for JBS."""

    # Paths
    config_dir: Path = CONFIG_DIR
    data_dir: Path = DEFAULT_DATA_DIR

    # Sub-configurations
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Database
    database_url: str = ""

    def __post_init__(self):
        if not self.database_url:
            self.database_url = database_url_for(self.data_dir / DEFAULT_DATABASE_FILE)


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "JBS_"
) -> JbsConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/jbs/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = JbsConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _load_from_env(config, env_prefix)

    return config


def _load_from_file(path: Path, config: JbsConfig) -> JbsConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Warning: Failed to load config from {path}: {e}", file=sys.stderr)
        return config

    if "scheduler" in data:
        for key, value in data["scheduler"].items():
            if key in ("retention", "stale_after"):
                value = _parse_seconds(value, default=getattr(config.scheduler, key))
            if hasattr(config.scheduler, key):
                setattr(config.scheduler, key, value)

    if "logging" in data:
        for key, value in data["logging"].items():
            if key == "file" and value:
                value = Path(value)
            if hasattr(config.logging, key):
                setattr(config.logging, key, value)

    # Top-level settings
    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])
    if "data_dir" in data:
        config.data_dir = Path(data["data_dir"])
        if "database_url" not in data:
            config.database_url = database_url_for(config.data_dir / DEFAULT_DATABASE_FILE)
    if "database_url" in data:
        config.database_url = data["database_url"]

    return config


def _parse_seconds(value: Any, default: Optional[int]) -> Optional[int]:
    """Parse an interval setting, keeping the default when it is unusable."""
    try:
        seconds = parse_interval(value)
    except InvalidIntervalFormat as e:
        print(f"Warning: {e}", file=sys.stderr)
        return default
    if is_manual(seconds):
        print(f"Warning: {value!r} is not a duration", file=sys.stderr)
        return default
    return seconds


def _load_from_env(config: JbsConfig, prefix: str) -> JbsConfig:
    """Load configuration from environment variables."""

    # Paths
    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}DATA_DIR"):
        config.data_dir = Path(env_val)
        config.database_url = database_url_for(config.data_dir / DEFAULT_DATABASE_FILE)
    if env_val := os.environ.get(f"{prefix}DATABASE_URL"):
        config.database_url = env_val
    if env_val := os.environ.get(f"{prefix}DB"):
        config.database_url = database_url_for(env_val)

    # Scheduler settings
    if env_val := os.environ.get(f"{prefix}RETENTION"):
        config.scheduler.retention = _parse_seconds(env_val, config.scheduler.retention)
    if env_val := os.environ.get(f"{prefix}MAX_ATTEMPTS"):
        config.scheduler.max_attempts = int(env_val)
    if env_val := os.environ.get(f"{prefix}RETRY_DELAY"):
        config.scheduler.retry_delay = float(env_val)
    if env_val := os.environ.get(f"{prefix}RETRY_BACKOFF"):
        config.scheduler.retry_backoff = float(env_val)
    if env_val := os.environ.get(f"{prefix}ATTEMPT_TIMEOUT"):
        config.scheduler.attempt_timeout = float(env_val)
    if env_val := os.environ.get(f"{prefix}STALE_AFTER"):
        config.scheduler.stale_after = _parse_seconds(env_val, default=None)

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    return config


def save_config(config: JbsConfig, path: Optional[Path] = None) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save
        path: Path to save to (default: config.config_dir / config.toml)
    """
    if path is None:
        path = config.config_dir / DEFAULT_CONFIG_FILE

    path.parent.mkdir(parents=True, exist_ok=True)

    # TOML has no null, so unset options are left out
    scheduler = {
        key: value
        for key, value in _config_to_dict(config, mask_secrets=False)["scheduler"].items()
        if value is not None
    }
    logging_section: dict[str, Any] = {
        "level": config.logging.level,
        "format": config.logging.format,
    }
    if config.logging.file:
        logging_section["file"] = str(config.logging.file)

    data = {
        "config_dir": str(config.config_dir),
        "data_dir": str(config.data_dir),
        "database_url": config.database_url,
        "scheduler": scheduler,
        "logging": logging_section,
    }

    with open(path, "wb") as f:
        f.write(b"# JBS Configuration\n\n")
        tomli_w.dump(data, f)


def ensure_directories(config: JbsConfig) -> None:
    """Ensure all required directories exist."""
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.data_dir.mkdir(parents=True, exist_ok=True)

    db_path = get_db_path(config.database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance (lazy-loaded)
_global_config: Optional[JbsConfig] = None


def get_config() -> JbsConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: JbsConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None


def validate_config(config: Optional[JbsConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []
    scheduler = config.scheduler

    # Scheduler validation
    if scheduler.retention < 0:
        errors.append(ValidationError(
            field="scheduler.retention",
            message="Retention must not be negative.",
            severity="error"
        ))
    elif scheduler.retention == 0:
        errors.append(ValidationError(
            field="scheduler.retention",
            message="Retention is 0: every run is deleted after each pass.",
            severity="warning"
        ))

    if scheduler.max_attempts < 1:
        errors.append(ValidationError(
            field="scheduler.max_attempts",
            message=f"At least one attempt is required, got {scheduler.max_attempts}.",
            severity="error"
        ))

    if scheduler.retry_delay < 0:
        errors.append(ValidationError(
            field="scheduler.retry_delay",
            message="Retry delay must not be negative.",
            severity="error"
        ))

    if scheduler.retry_backoff < 0:
        errors.append(ValidationError(
            field="scheduler.retry_backoff",
            message="Retry backoff must not be negative.",
            severity="error"
        ))

    if scheduler.attempt_timeout is not None and scheduler.attempt_timeout <= 0:
        errors.append(ValidationError(
            field="scheduler.attempt_timeout",
            message="Attempt timeout must be positive when set.",
            severity="error"
        ))

    if scheduler.stale_after is not None:
        if scheduler.stale_after <= 0:
            errors.append(ValidationError(
                field="scheduler.stale_after",
                message="stale_after must be positive when set.",
                severity="error"
            ))
        elif scheduler.attempt_timeout and scheduler.stale_after < scheduler.attempt_timeout:
            errors.append(ValidationError(
                field="scheduler.stale_after",
                message="stale_after is shorter than attempt_timeout; live attempts may be released.",
                severity="warning"
            ))

    # Logging validation
    if config.logging.level.upper() not in LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error"
        ))

    # Database validation
    if not config.database_url.startswith("sqlite:"):
        errors.append(ValidationError(
            field="database_url",
            message=f"Only SQLite databases are supported: {config.database_url}",
            severity="error"
        ))
    elif is_memory_url(config.database_url):
        errors.append(ValidationError(
            field="database_url",
            message="In-memory database: run history does not survive the process.",
            severity="warning"
        ))

    # Path validation
    if not config.config_dir.exists():
        errors.append(ValidationError(
            field="config_dir",
            message=f"Config directory does not exist: {config.config_dir}",
            severity="warning"
        ))

    if not config.data_dir.exists():
        errors.append(ValidationError(
            field="data_dir",
            message=f"Data directory does not exist: {config.data_dir}",
            severity="warning"
        ))

    try:
        if config.data_dir.exists():
            test_file = config.data_dir / ".write_test"
            test_file.touch()
            test_file.unlink()
    except OSError:
        errors.append(ValidationError(
            field="data_dir",
            message=f"Data directory is not writable: {config.data_dir}",
            severity="error"
        ))

    return errors


def _config_to_dict(config: JbsConfig, mask_secrets: bool = True) -> dict[str, Any]:
    """
    Convert configuration to dictionary.

    Args:
        config: Configuration to convert
        mask_secrets: If True, mask credentials embedded in the database URL

    Returns:
        Dictionary representation of config
    """
    database_url = config.database_url
    if mask_secrets and "@" in database_url and "://" in database_url:
        scheme, rest = database_url.split("://", 1)
        database_url = f"{scheme}://****@{rest.rsplit('@', 1)[1]}"

    return {
        "config_dir": str(config.config_dir),
        "data_dir": str(config.data_dir),
        "database_url": database_url,
        "scheduler": {
            "retention": config.scheduler.retention,
            "max_attempts": config.scheduler.max_attempts,
            "retry_delay": config.scheduler.retry_delay,
            "retry_backoff": config.scheduler.retry_backoff,
            "attempt_timeout": config.scheduler.attempt_timeout,
            "stale_after": config.scheduler.stale_after,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
        },
    }


def export_config_yaml(config: JbsConfig, mask_secrets: bool = True) -> str:
    """
    Export configuration as YAML string.

    Args:
        config: Configuration to export
        mask_secrets: If True, mask sensitive values

    Returns:
        YAML string representation of config
    """
    config_dict = _config_to_dict(config, mask_secrets)
    return yaml.dump(config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_config_json(config: JbsConfig, mask_secrets: bool = True) -> str:
    """
    Export configuration as JSON string.

    Args:
        config: Configuration to export
        mask_secrets: If True, mask sensitive values

    Returns:
        JSON string representation of config
    """
    config_dict = _config_to_dict(config, mask_secrets)
    return json.dumps(config_dict, indent=2)
