"""Service layer for anomaly job operations.

Provides job registration, open/close transitions and model-state
publication. All state changes are logged for auditability.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from anomalycast.core.exceptions import ConflictError, InvalidJobStateError, ValidationError
from anomalycast.core.logging import get_logger
from anomalycast.features.jobs.models import VALID_JOB_TRANSITIONS, AnomalyJob, JobState
from anomalycast.features.jobs.provider import job_not_found
from anomalycast.features.jobs.schemas import JobCreate, JobResponse, ModelStateUpdate
from anomalycast.shared.timevalue import format_duration, is_bucket_aligned

logger = get_logger(__name__)


class JobService:
    """Service for managing anomaly jobs."""

    async def create_job(
        self,
        db: AsyncSession,
        job_create: JobCreate,
    ) -> JobResponse:
        """Register a new job in CLOSED state.

        Args:
            db: Database session.
            job_create: Job registration request.

        Returns:
            The created job.

        Raises:
            ConflictError: If the job id is already taken.
        """
        job = AnomalyJob(
            job_id=job_create.job_id,
            bucket_span_seconds=int(job_create.bucket_span.total_seconds()),
            state=JobState.CLOSED.value,
        )
        db.add(job)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                message=f"The job cannot be created with the id [{job_create.job_id}]. "
                "The id is already used.",
                details={"job_id": job_create.job_id},
            ) from None

        await db.refresh(job)

        logger.info(
            "jobs.job_created",
            job_id=job.job_id,
            bucket_span=format_duration(job_create.bucket_span),
        )

        return self._to_response(job)

    async def get_job(
        self,
        db: AsyncSession,
        job_id: str,
    ) -> JobResponse:
        """Get job by ID.

        Raises:
            NotFoundError: If the job does not exist.
        """
        return self._to_response(await self._load(db, job_id))

    async def open_job(self, db: AsyncSession, job_id: str) -> JobResponse:
        """Move a job to OPEN so it accepts forecast requests."""
        return await self._transition(db, job_id, JobState.OPEN)

    async def close_job(self, db: AsyncSession, job_id: str) -> JobResponse:
        """Move a job to CLOSED. Forecasts already running are unaffected."""
        return await self._transition(db, job_id, JobState.CLOSED)

    async def publish_model_state(
        self,
        db: AsyncSession,
        job_id: str,
        update: ModelStateUpdate,
    ) -> JobResponse:
        """Record the last processed bucket and the current model snapshot.

        Args:
            db: Database session.
            job_id: Job identifier.
            update: New model state.

        Returns:
            Updated job.

        Raises:
            NotFoundError: If the job does not exist.
            ValidationError: If the bucket time is misaligned or moves backwards.
        """
        job = await self._load(db, job_id)
        bucket_span = timedelta(seconds=job.bucket_span_seconds)

        if not is_bucket_aligned(update.last_bucket_time, bucket_span):
            raise ValidationError(
                message=f"[last_bucket_time] must be aligned to the bucket span: "
                f"[{update.last_bucket_time.isoformat()}/{format_duration(bucket_span)}]",
                details={"job_id": job_id},
            )
        if job.last_bucket_time is not None and update.last_bucket_time < job.last_bucket_time:
            raise ValidationError(
                message=f"[last_bucket_time] must not move backwards: "
                f"[{update.last_bucket_time.isoformat()} < {job.last_bucket_time.isoformat()}]",
                details={"job_id": job_id},
            )

        job.last_bucket_time = update.last_bucket_time
        job.model_snapshot = update.model_snapshot
        await db.commit()
        await db.refresh(job)

        logger.info(
            "jobs.model_state_published",
            job_id=job_id,
            last_bucket_time=update.last_bucket_time.isoformat(),
        )

        return self._to_response(job)

    async def _transition(
        self,
        db: AsyncSession,
        job_id: str,
        target: JobState,
    ) -> JobResponse:
        job = await self._load(db, job_id)
        current = JobState(job.state)

        if target not in VALID_JOB_TRANSITIONS[current]:
            raise InvalidJobStateError(
                message=f"Cannot {'open' if target == JobState.OPEN else 'close'} "
                f"job [{job_id}] because it is already [{current.value}]",
                details={"job_id": job_id, "state": current.value},
            )

        job.state = target.value
        await db.commit()
        await db.refresh(job)

        logger.info(
            "jobs.job_opened" if target == JobState.OPEN else "jobs.job_closed",
            job_id=job_id,
        )

        return self._to_response(job)

    async def _load(self, db: AsyncSession, job_id: str) -> AnomalyJob:
        result = await db.execute(select(AnomalyJob).where(AnomalyJob.job_id == job_id))
        job = result.scalar_one_or_none()
        if job is None:
            raise job_not_found(job_id)
        return job

    def _to_response(self, job: AnomalyJob) -> JobResponse:
        """Convert AnomalyJob model to response schema."""
        return JobResponse(
            job_id=job.job_id,
            bucket_span=timedelta(seconds=job.bucket_span_seconds),
            state=JobState(job.state),
            last_bucket_time=job.last_bucket_time,
            has_model_snapshot=job.model_snapshot is not None,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
