"""Durable run store.

The RunStore is the narrow read/write contract between the scheduler and
the ``runs`` table. It opens one short session per operation and commits
before returning, so a crashed process always leaves an accurate trail.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, List, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from jbs_cli.database.connection import (
    create_tables,
    database_url_for,
    get_session_maker,
    init_engine,
    session_scope,
)
from jbs_cli.database.models import Run, RunStatus
from jbs_cli.database.repositories import RunRepository
from jbs_cli.exceptions import JobAlreadyRunning, StoreUnavailable

logger = logging.getLogger(__name__)


class RunStore:
    """Run records backed by an embedded SQLite database.

    Example:
        store = RunStore("./jobs.sqlite")
        run_id = store.insert_running("news", now)
        store.complete_run(run_id, later, RunStatus.SUCCESS, "ok")

    Any database failure surfaces as StoreUnavailable.
    """

    def __init__(self, location: Union[str, Path] = ":memory:") -> None:
        """Open (and if needed create) the store.

        Args:
            location: SQLite file path, ``":memory:"`` or a ``sqlite:`` URL
        """
        self.database_url = database_url_for(location)
        try:
            self._engine = init_engine(self.database_url)
            self._session_factory = get_session_maker(self._engine)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(
                f"Could not open run store: {e}", self.database_url
            ) from e
        self.create_table_if_missing()

    @contextmanager
    def _repository(self) -> Generator[RunRepository, None, None]:
        try:
            with session_scope(self._session_factory) as session:
                yield RunRepository(session)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Run store error: {e}")
            raise StoreUnavailable(
                f"Run store unavailable: {e}", self.database_url
            ) from e

    def create_table_if_missing(self) -> None:
        """Create the runs table and its indexes if they do not exist."""
        try:
            create_tables(self._engine)
        except SQLAlchemyError as e:
            raise StoreUnavailable(
                f"Could not initialize run store schema: {e}", self.database_url
            ) from e

    def insert_running(self, job_id: str, scheduled_at: datetime) -> int:
        """Insert a running row for a job and return its id.

        Raises:
            JobAlreadyRunning: If the job already has a row in flight
        """
        try:
            with self._repository() as repo:
                return repo.insert_running(job_id, scheduled_at)
        except IntegrityError as e:
            raise JobAlreadyRunning(job_id) from e

    def claim_run(self, job_id: str, scheduled_at: datetime) -> Optional[int]:
        """Insert a running row unless one is already in flight.

        Returns:
            The new run id, or None if another attempt holds the job
        """
        try:
            with self._repository() as repo:
                return repo.claim(job_id, scheduled_at)
        except IntegrityError:
            # Lost the race against a concurrent claim
            return None

    def complete_run(
        self,
        run_id: int,
        executed_at: datetime,
        status: RunStatus,
        output: str,
    ) -> None:
        """Record the end of an attempt."""
        with self._repository() as repo:
            if not repo.complete(run_id, executed_at, status, output):
                logger.warning(f"Run {run_id} vanished before it could be completed")

    def is_running(self, job_id: str) -> bool:
        """True iff the job has a run with no completion time."""
        with self._repository() as repo:
            return repo.is_running(job_id)

    def last_run(self, job_id: str) -> Optional[Run]:
        """Most recent run of a job, or None if it never ran."""
        with self._repository() as repo:
            return repo.last_run(job_id)

    def get_run(self, run_id: int) -> Optional[Run]:
        """Get a single run by id."""
        with self._repository() as repo:
            return repo.get_by_id(run_id)

    def list_runs(
        self,
        job_id: Optional[str] = None,
        status: Optional[RunStatus] = None,
        limit: int = 50,
    ) -> List[Run]:
        """Recent runs, newest first."""
        with self._repository() as repo:
            return repo.get_history(job_id=job_id, status=status, limit=limit)

    def count_runs(
        self,
        job_id: Optional[str] = None,
        status: Optional[RunStatus] = None,
    ) -> int:
        """Number of runs on record."""
        with self._repository() as repo:
            return repo.count(job_id=job_id, status=status)

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete runs with scheduled_at before the cutoff."""
        with self._repository() as repo:
            deleted = repo.delete_older_than(cutoff)
        if deleted:
            logger.info(f"Deleted {deleted} runs scheduled before {cutoff:%Y-%m-%d %H:%M:%S}")
        return deleted

    def release_stale(self, cutoff: datetime, executed_at: datetime) -> int:
        """Fail in-flight runs scheduled before the cutoff.

        Returns:
            Number of runs released
        """
        with self._repository() as repo:
            released = repo.release_in_flight(
                executed_at,
                output=f"Released: no completion recorded since before {cutoff:%Y-%m-%d %H:%M:%S}",
                started_before=cutoff,
            )
        if released:
            logger.warning(f"Released {released} stale in-flight runs")
        return released

    def release_job(self, job_id: str, executed_at: datetime) -> int:
        """Fail every in-flight run of a job, unblocking it.

        Returns:
            Number of runs released
        """
        with self._repository() as repo:
            released = repo.release_in_flight(
                executed_at,
                output="Released manually",
                job_id=job_id,
            )
        if released:
            logger.warning(f"Released {released} in-flight runs of job {job_id}")
        return released

    def close(self) -> None:
        """Dispose of the underlying engine."""
        self._engine.dispose()
