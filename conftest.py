"""Shared pytest fixtures for AnomalyCast tests."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from anomalycast.core.config import get_settings
from anomalycast.core.database import Base
from anomalycast.features.forecasting.models import ForecastRequestStatsRecord
from anomalycast.features.jobs.models import AnomalyJob
from anomalycast.main import app


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on the test database with the schema created.

    Cleans up test jobs (ids starting with ``test-``) and their forecasts
    afterwards. Requires PostgreSQL to be running (docker-compose up -d).
    """
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield maker

    async with maker() as session:
        # Points go with their stats row (ON DELETE CASCADE)
        await session.execute(
            delete(ForecastRequestStatsRecord).where(
                ForecastRequestStatsRecord.job_id.like("test-%")
            )
        )
        await session.execute(delete(AnomalyJob).where(AnomalyJob.job_id.like("test-%")))
        await session.commit()

    await engine.dispose()


@pytest.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for integration tests."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
