"""Test fixtures for jobs module."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from anomalycast.core.database import get_db
from anomalycast.features.jobs.models import JobState
from anomalycast.features.jobs.provider import InMemoryJobProvider, JobView
from anomalycast.features.jobs.schemas import JobCreate, ModelStateUpdate
from anomalycast.main import app

# =============================================================================
# API Fixtures for Integration Tests
# =============================================================================


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database dependency override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Unit Test Fixtures
# =============================================================================


@pytest.fixture
def sample_job_create() -> JobCreate:
    """Hourly job registration request."""
    return JobCreate(job_id="test-cpu-hourly", bucket_span="1h")


@pytest.fixture
def sample_model_state() -> ModelStateUpdate:
    """Model state after a day of hourly buckets."""
    return ModelStateUpdate(
        last_bucket_time=datetime(2024, 1, 1, 23, 0, tzinfo=UTC),
        model_snapshot={"bucket_values": [20.0] * 24, "method": "mean"},
    )


@pytest.fixture
def sample_job_view() -> JobView:
    """Open hourly job view with published model state."""
    return JobView(
        job_id="test-cpu-hourly",
        state=JobState.OPEN,
        bucket_span=timedelta(hours=1),
        last_bucket_time=datetime(2024, 1, 1, 23, 0, tzinfo=UTC),
        model_snapshot={"bucket_values": [20.0] * 24},
    )


@pytest.fixture
def memory_jobs(sample_job_view: JobView) -> InMemoryJobProvider:
    """In-memory provider holding the sample job."""
    return InMemoryJobProvider([sample_job_view])
