"""Forecasting runtime wiring and FastAPI dependencies.

The runtime (coordinator, store, reaper) is built once in the application
lifespan and kept on ``app.state.forecasting``. Route handlers reach it
through the dependencies below, which tests replace via
``app.dependency_overrides``.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from anomalycast.core.config import Settings
from anomalycast.core.logging import get_logger
from anomalycast.features.forecasting.coordinator import ForecastCoordinator
from anomalycast.features.forecasting.engine import AnalysisEngine, BaselineAnalysisEngine
from anomalycast.features.forecasting.reaper import ExpiryReaper
from anomalycast.features.forecasting.store import (
    AbstractForecastStore,
    InMemoryForecastStore,
    SqlAlchemyForecastStore,
)
from anomalycast.features.forecasting.validation import ForecastDefaults
from anomalycast.features.jobs.provider import DatabaseJobProvider, JobProvider
from anomalycast.shared.clock import Clock, SystemClock

logger = get_logger(__name__)


@dataclass
class ForecastingRuntime:
    """Long-lived forecasting components of one process."""

    coordinator: ForecastCoordinator
    reaper: ExpiryReaper
    store: AbstractForecastStore


def build_forecast_store(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
) -> AbstractForecastStore:
    """Forecast store selected by ``forecast_store_backend``."""
    if settings.forecast_store_backend == "database":
        return SqlAlchemyForecastStore(session_maker)
    return InMemoryForecastStore()


def build_forecasting_runtime(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    *,
    clock: Clock | None = None,
    engine: AnalysisEngine | None = None,
    jobs: JobProvider | None = None,
) -> ForecastingRuntime:
    """Assemble the forecasting runtime from settings.

    Jobs are always read from the database. ``forecast_store_backend``
    selects where forecast stats and points live.

    Args:
        settings: Application settings.
        session_maker: Session factory for the database-backed components.
        clock: Time source (system clock by default).
        engine: Analysis engine (baseline engine by default).
        jobs: Job provider override.

    Returns:
        The wired runtime; the reaper is not started.
    """
    clock = clock or SystemClock()
    store = build_forecast_store(settings, session_maker)

    coordinator = ForecastCoordinator(
        jobs=jobs or DatabaseJobProvider(session_maker),
        store=store,
        engine=engine or BaselineAnalysisEngine(),
        defaults=ForecastDefaults.from_settings(settings),
        clock=clock,
        poll_interval=settings.forecast_poll_interval,
        wait_timeout=settings.forecast_wait_timeout,
    )
    reaper = ExpiryReaper(store, interval=settings.forecast_reaper_interval, clock=clock)

    logger.info(
        "forecasting.runtime_built",
        store_backend=settings.forecast_store_backend,
        engine=type(coordinator.engine).__name__,
    )

    return ForecastingRuntime(coordinator=coordinator, reaper=reaper, store=store)


def get_forecasting_runtime(request: Request) -> ForecastingRuntime:
    """Get the runtime built by the application lifespan."""
    runtime: ForecastingRuntime = request.app.state.forecasting
    return runtime


def get_forecast_coordinator(request: Request) -> ForecastCoordinator:
    """Dependency for the forecast coordinator."""
    return get_forecasting_runtime(request).coordinator


def get_expiry_reaper(request: Request) -> ExpiryReaper:
    """Dependency for the expiry reaper."""
    return get_forecasting_runtime(request).reaper
