"""Retention sweeping for run records."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from jbs_cli.database.models import ensure_utc, utcnow
from jbs_cli.database.store import RunStore

logger = logging.getLogger(__name__)

# One week
DEFAULT_RETENTION = 60 * 60 * 24 * 7


class RetentionSweeper:
    """Deletes runs older than the retention window.

    Example:
        sweeper = RetentionSweeper(store, retention=86400)
        deleted = sweeper.sweep()
    """

    def __init__(
        self,
        store: RunStore,
        retention: int = DEFAULT_RETENTION,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if retention < 0:
            raise ValueError("retention must not be negative")
        self._store = store
        self.retention = retention
        self._clock = clock or utcnow

    def cutoff(self) -> datetime:
        """Runs scheduled before this instant are eligible for deletion."""
        return ensure_utc(self._clock()) - timedelta(seconds=self.retention)

    def sweep(self) -> int:
        """Delete expired runs.

        Returns:
            Number of runs deleted

        Raises:
            StoreUnavailable: If the store cannot be written
        """
        cutoff = self.cutoff()
        deleted = self._store.delete_older_than(cutoff)
        logger.debug(f"Retention sweep removed {deleted} runs (retention={self.retention}s)")
        return deleted
