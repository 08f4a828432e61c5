"""
SQLAlchemy models for the JBS run store.

The schema is a single ``runs`` table. Timestamps are kept as sortable
``YYYY-MM-DD HH:MM:SS`` text so the file stays readable by any SQLite
client and ordering works with plain string comparison.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Index, Integer, Text, text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.types import TypeDecorator

# Create base class for all models
Base = declarative_base()

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    """Current UTC time truncated to the stored resolution."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as stored text (UTC, second resolution)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse stored timestamp text into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class TextTimestamp(TypeDecorator):
    """Datetime column persisted as sortable text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return format_timestamp(value)

    def process_result_value(self, value: Optional[str], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return parse_timestamp(value)


class RunStatus(str, Enum):
    """Status of a single execution attempt."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class Run(Base):
    """
    One execution attempt of a job.

    A row with ``executed_at`` NULL marks the job as in flight; that marker
    is what keeps overlapping invocations from running the same job twice.
    """

    __tablename__ = "runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Execution timing
    scheduled_at: Mapped[datetime] = mapped_column(TextTimestamp, nullable=False)
    executed_at: Mapped[Optional[datetime]] = mapped_column(TextTimestamp, nullable=True)

    # Results
    status: Mapped[str] = mapped_column(Text, nullable=False, default=RunStatus.RUNNING.value)
    output: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="")

    __table_args__ = (
        Index("ix_runs_job_id_scheduled_at", "job_id", "scheduled_at"),
        Index("ix_runs_scheduled_at", "scheduled_at"),
        # At most one in-flight row per job
        Index(
            "ux_runs_job_in_flight",
            "job_id",
            unique=True,
            sqlite_where=text("executed_at IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    @property
    def in_flight(self) -> bool:
        """True while the attempt has not recorded a completion time."""
        return self.executed_at is None

    @property
    def duration(self) -> Optional[float]:
        """Seconds between creation and completion, if completed."""
        if self.executed_at is None:
            return None
        return (self.executed_at - self.scheduled_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert run to dictionary representation."""
        return {
            "id": self.id,
            "job_id": self.job_id,
            "scheduled_at": format_timestamp(self.scheduled_at) if self.scheduled_at else None,
            "executed_at": format_timestamp(self.executed_at) if self.executed_at else None,
            "status": self.status,
            "output": self.output,
        }

    def __repr__(self) -> str:
        return f"<Run id={self.id} job_id={self.job_id!r} status={self.status}>"
