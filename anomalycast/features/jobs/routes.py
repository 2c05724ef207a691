"""API routes for anomaly job management.

Jobs are registered CLOSED, opened to accept forecasts, and fed model
state by the ingestion pipeline.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from anomalycast.core.database import get_db
from anomalycast.features.jobs.schemas import JobCreate, JobResponse, ModelStateUpdate
from anomalycast.features.jobs.service import JobService

router = APIRouter(prefix="/anomaly-jobs", tags=["anomaly-jobs"])


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an anomaly job",
    description="""
Register a new anomaly detection job with its bucket span.

The job starts in `closed` state. Open it with `POST /anomaly-jobs/{job_id}/_open`
before requesting forecasts.

**Error Handling**:
- Returns 409 if the job id is already taken
- Returns 422 if the id or bucket span is malformed
""",
)
async def create_job(
    job_create: JobCreate,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Register a job."""
    return await JobService().create_job(db=db, job_create=job_create)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job by ID",
)
async def get_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Get job details by ID."""
    return await JobService().get_job(db=db, job_id=job_id)


@router.post(
    "/{job_id}/_open",
    response_model=JobResponse,
    summary="Open a job",
    description="Open a closed job. Returns 409 if the job is already open.",
)
async def open_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Open a job."""
    return await JobService().open_job(db=db, job_id=job_id)


@router.post(
    "/{job_id}/_close",
    response_model=JobResponse,
    summary="Close a job",
    description="""
Close an open job. Forecasts already submitted keep running to completion.
Returns 409 if the job is already closed.
""",
)
async def close_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Close a job."""
    return await JobService().close_job(db=db, job_id=job_id)


@router.put(
    "/{job_id}/model-state",
    response_model=JobResponse,
    summary="Publish model state",
    description="""
Record the last processed bucket and the model snapshot after a flush.

Forecasts start at the bucket right after `last_bucket_time` and are computed
from the snapshot that was current when they were submitted.

Example:
```json
{
  "last_bucket_time": "2024-01-02T01:00:00Z",
  "model_snapshot": {"bucket_values": [20.0, 20.0, 20.0], "method": "mean"}
}
```
""",
)
async def publish_model_state(
    job_id: str,
    update: ModelStateUpdate,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Publish model state for a job."""
    return await JobService().publish_model_state(db=db, job_id=job_id, update=update)
