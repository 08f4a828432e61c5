"""Database repositories for JBS.

Provides the queries the scheduler needs on top of the ``runs`` table:
in-flight checks, last-run lookups, attempt bookkeeping and retention.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, exists, insert, literal, select, update
from sqlalchemy.orm import Session

from jbs_cli.database.models import Run, RunStatus


class RunRepository:
    """
    Repository for run records.

    Every write commits immediately: the run trail is the coordination
    mechanism between invocations, so it must never sit in a buffer.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def insert_running(self, job_id: str, scheduled_at: datetime) -> int:
        """
        Record the start of an attempt.

        Args:
            job_id: Job identifier
            scheduled_at: When the attempt was created

        Returns:
            ID of the new run
        """
        run = Run(
            job_id=job_id,
            scheduled_at=scheduled_at,
            executed_at=None,
            status=RunStatus.RUNNING.value,
            output="",
        )
        self.session.add(run)
        self.session.commit()
        return run.id

    def claim(self, job_id: str, scheduled_at: datetime) -> Optional[int]:
        """
        Insert a running row only if the job has none in flight.

        The existence check and the insert are one statement, so two
        invocations racing for the same job cannot both succeed.

        Args:
            job_id: Job identifier
            scheduled_at: When the attempt was created

        Returns:
            ID of the new run, or None if the job is already running
        """
        runs = Run.__table__
        in_flight = exists().where(
            runs.c.job_id == job_id,
            runs.c.executed_at.is_(None),
        )
        source = select(
            literal(job_id),
            literal(scheduled_at, runs.c.scheduled_at.type),
            literal(RunStatus.RUNNING.value),
            literal(""),
        ).where(~in_flight)

        result = self.session.execute(
            insert(runs).from_select(
                ["job_id", "scheduled_at", "status", "output"],
                source,
            )
        )
        self.session.commit()

        if result.rowcount != 1:
            return None
        return result.lastrowid

    def complete(
        self,
        run_id: int,
        executed_at: datetime,
        status: RunStatus,
        output: str,
    ) -> bool:
        """
        Move a run from running to a terminal status.

        Args:
            run_id: Run ID
            executed_at: When the attempt finished
            status: Terminal status
            output: Captured output or error detail

        Returns:
            True if the run existed and was updated
        """
        result = self.session.execute(
            update(Run.__table__)
            .where(Run.__table__.c.id == run_id)
            .values(
                executed_at=executed_at,
                status=RunStatus(status).value,
                output=output,
            )
        )
        self.session.commit()
        return result.rowcount == 1

    def is_running(self, job_id: str) -> bool:
        """
        Check if a job has an attempt in flight.

        Args:
            job_id: Job identifier

        Returns:
            True if a run exists for the job with no completion time
        """
        return self.session.query(
            exists().where(
                Run.job_id == job_id,
                Run.executed_at.is_(None),
            )
        ).scalar()

    def last_run(self, job_id: str) -> Optional[Run]:
        """
        Get the most recent run for a job.

        Args:
            job_id: Job identifier

        Returns:
            Latest run by scheduled_at (ties broken by id), or None
        """
        return self.session.query(Run).filter(
            Run.job_id == job_id
        ).order_by(
            desc(Run.scheduled_at),
            desc(Run.id),
        ).first()

    def get_by_id(self, run_id: int) -> Optional[Run]:
        """
        Get a run by its ID.

        Args:
            run_id: Run ID

        Returns:
            Run if found, None otherwise
        """
        return self.session.query(Run).filter(Run.id == run_id).first()

    def get_history(
        self,
        job_id: Optional[str] = None,
        status: Optional[RunStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Run]:
        """
        Get run history, newest first.

        Args:
            job_id: Filter by job (optional)
            status: Filter by status (optional)
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            List of runs ordered by scheduled_at descending
        """
        query = self.session.query(Run).order_by(
            desc(Run.scheduled_at),
            desc(Run.id),
        )

        if job_id:
            query = query.filter(Run.job_id == job_id)
        if status:
            query = query.filter(Run.status == RunStatus(status).value)

        return query.offset(offset).limit(limit).all()

    def count(
        self,
        job_id: Optional[str] = None,
        status: Optional[RunStatus] = None,
    ) -> int:
        """Count runs, optionally filtered by job and status."""
        query = self.session.query(Run)
        if job_id:
            query = query.filter(Run.job_id == job_id)
        if status:
            query = query.filter(Run.status == RunStatus(status).value)
        return query.count()

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete runs scheduled before a cutoff.

        Args:
            cutoff: Runs with scheduled_at strictly before this are removed

        Returns:
            Number of runs deleted
        """
        result = self.session.query(Run).filter(
            Run.scheduled_at < cutoff
        ).delete(synchronize_session=False)
        self.session.commit()
        return result

    def release_in_flight(
        self,
        executed_at: datetime,
        output: str,
        job_id: Optional[str] = None,
        started_before: Optional[datetime] = None,
    ) -> int:
        """
        Mark in-flight runs as failed.

        Used to unblock jobs whose attempt never recorded a completion,
        e.g. because the process running it was killed.

        Args:
            executed_at: Completion time to record
            output: Output to record on the released runs
            job_id: Only release runs of this job (optional)
            started_before: Only release runs scheduled before this (optional)

        Returns:
            Number of runs released
        """
        runs = Run.__table__
        stmt = update(runs).where(runs.c.executed_at.is_(None))
        if job_id:
            stmt = stmt.where(runs.c.job_id == job_id)
        if started_before is not None:
            stmt = stmt.where(runs.c.scheduled_at < started_before)

        result = self.session.execute(
            stmt.values(
                executed_at=executed_at,
                status=RunStatus.FAILED.value,
                output=output,
            )
        )
        self.session.commit()
        return result.rowcount
