"""Run store persistence for JBS."""

from jbs_cli.database.models import Base, Run, RunStatus
from jbs_cli.database.store import RunStore

__all__ = [
    "Base",
    "Run",
    "RunStatus",
    "RunStore",
]
