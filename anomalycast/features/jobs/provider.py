"""Read-side contract the forecasting feature consumes from the job subsystem.

Provides an abstract interface plus in-memory and database implementations.
``get_job_view`` returns every field a forecast needs in one consistent read
so concurrent submissions each capture their own snapshot of the model.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from anomalycast.core.exceptions import DatabaseError, NotFoundError
from anomalycast.features.jobs.models import AnomalyJob, JobState


@dataclass(frozen=True)
class JobView:
    """Point-in-time view of an anomaly job.

    Attributes:
        job_id: Job identifier.
        state: Lifecycle state at read time.
        bucket_span: Bucket width.
        last_bucket_time: Start of the last processed bucket, None if no data yet.
        model_snapshot: Opaque model state, None if never published.
    """

    job_id: str
    state: JobState
    bucket_span: timedelta
    last_bucket_time: datetime | None = None
    model_snapshot: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def is_open(self) -> bool:
        return self.state == JobState.OPEN


def job_not_found(job_id: str) -> NotFoundError:
    """Build the error raised for unknown job ids."""
    return NotFoundError(
        message=f"No known job with id [{job_id}]",
        details={"job_id": job_id},
    )


class JobProvider(ABC):
    """Abstract read access to anomaly jobs.

    All methods raise NotFoundError for unknown job ids.
    """

    @abstractmethod
    async def get_job_view(self, job_id: str) -> JobView:
        """Read state, bucket span, last bucket and model snapshot together."""

    async def is_open(self, job_id: str) -> bool:
        return (await self.get_job_view(job_id)).is_open

    async def get_bucket_span(self, job_id: str) -> timedelta:
        return (await self.get_job_view(job_id)).bucket_span

    async def get_last_processed_bucket_time(self, job_id: str) -> datetime | None:
        return (await self.get_job_view(job_id)).last_bucket_time

    async def get_model_snapshot(self, job_id: str) -> dict[str, Any] | None:
        return (await self.get_job_view(job_id)).model_snapshot


class InMemoryJobProvider(JobProvider):
    """Job provider backed by a dict of views.

    Snapshots are deep-copied on the way in and out, so a forecast keeps the
    model state it captured even if the job is updated afterwards.
    """

    def __init__(self, jobs: list[JobView] | None = None) -> None:
        self._jobs: dict[str, JobView] = {}
        for job in jobs or []:
            self.put(job)

    def put(self, job: JobView) -> None:
        self._jobs[job.job_id] = replace(job, model_snapshot=copy.deepcopy(job.model_snapshot))

    def set_state(self, job_id: str, state: JobState) -> None:
        self._jobs[job_id] = replace(self._require(job_id), state=state)

    def publish_model_state(
        self,
        job_id: str,
        last_bucket_time: datetime,
        model_snapshot: dict[str, Any],
    ) -> None:
        self._jobs[job_id] = replace(
            self._require(job_id),
            last_bucket_time=last_bucket_time,
            model_snapshot=copy.deepcopy(model_snapshot),
        )

    async def get_job_view(self, job_id: str) -> JobView:
        job = self._require(job_id)
        return replace(job, model_snapshot=copy.deepcopy(job.model_snapshot))

    def _require(self, job_id: str) -> JobView:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise job_not_found(job_id) from None


class DatabaseJobProvider(JobProvider):
    """Job provider reading the ``anomaly_job`` table.

    Opens a short-lived session per read; callers are long-lived background
    components that cannot borrow a request-scoped session.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def get_job_view(self, job_id: str) -> JobView:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(AnomalyJob).where(AnomalyJob.job_id == job_id)
                )
                job = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(message=f"Failed to read job [{job_id}]: {e}") from e

        if job is None:
            raise job_not_found(job_id)

        return JobView(
            job_id=job.job_id,
            state=JobState(job.state),
            bucket_span=timedelta(seconds=job.bucket_span_seconds),
            last_bucket_time=job.last_bucket_time,
            model_snapshot=job.model_snapshot,
        )
