"""Tests for forecasting runtime wiring."""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from anomalycast.core.config import Settings
from anomalycast.features.forecasting.deps import build_forecast_store, build_forecasting_runtime
from anomalycast.features.forecasting.store import InMemoryForecastStore, SqlAlchemyForecastStore
from anomalycast.features.jobs.provider import InMemoryJobProvider


@pytest.fixture
async def unconnected_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory that is never used to connect."""
    engine = create_async_engine(Settings().database_url)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestBuildForecastStore:
    """Tests for build_forecast_store."""

    def test_memory_backend(self, unconnected_session_maker):
        settings = Settings(forecast_store_backend="memory")

        store = build_forecast_store(settings, unconnected_session_maker)

        assert isinstance(store, InMemoryForecastStore)

    def test_database_backend(self, unconnected_session_maker):
        settings = Settings(forecast_store_backend="database")

        store = build_forecast_store(settings, unconnected_session_maker)

        assert isinstance(store, SqlAlchemyForecastStore)


class TestBuildForecastingRuntime:
    """Tests for build_forecasting_runtime."""

    def test_components_share_one_store(self, unconnected_session_maker):
        settings = Settings(forecast_store_backend="database")

        runtime = build_forecasting_runtime(
            settings, unconnected_session_maker, jobs=InMemoryJobProvider([])
        )

        assert isinstance(runtime.store, SqlAlchemyForecastStore)
        assert runtime.coordinator.store is runtime.store
        assert runtime.reaper.store is runtime.store
