"""Test fixtures for forecasting module."""

import asyncio
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from anomalycast.features.forecasting.coordinator import ForecastCoordinator
from anomalycast.features.forecasting.deps import get_expiry_reaper, get_forecast_coordinator
from anomalycast.features.forecasting.domain import Expiry, Forecast, ForecastRequestStats
from anomalycast.features.forecasting.engine import (
    AnalysisEngine,
    BaselineAnalysisEngine,
    EngineError,
    EngineRequest,
    ForecastValue,
)
from anomalycast.features.forecasting.reaper import ExpiryReaper
from anomalycast.features.forecasting.store import InMemoryForecastStore
from anomalycast.features.forecasting.validation import ForecastDefaults
from anomalycast.features.jobs.models import JobState
from anomalycast.features.jobs.provider import InMemoryJobProvider, JobView
from anomalycast.main import app
from anomalycast.shared.clock import ManualClock

LAST_BUCKET_TIME = datetime(2024, 1, 1, 23, 0, tzinfo=UTC)
NOW = datetime(2024, 1, 2, 0, 5, tzinfo=UTC)
HOURLY_SNAPSHOT = {"bucket_values": [20.0] * 24, "method": "mean"}


# =============================================================================
# Engines
# =============================================================================


class GatedEngine(AnalysisEngine):
    """Produces well-formed constant forecasts once the gate is opened.

    Lets tests observe a forecast while it is still STARTED.
    """

    def __init__(self, value: float = 20.0, open_gate: bool = False) -> None:
        self.value = value
        self.gate = asyncio.Event()
        if open_gate:
            self.gate.set()
        self.requests: list[EngineRequest] = []

    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        self.requests.append(request)
        await self.gate.wait()
        return [
            ForecastValue(timestamp=request.bucket_time(i), value=self.value)
            for i in range(request.expected_points)
        ]


class FailingEngine(AnalysisEngine):
    """Always raises EngineError."""

    def __init__(self, message: str = "model state is corrupt") -> None:
        self.message = message

    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        raise EngineError(self.message)


class ShortEngine(AnalysisEngine):
    """Returns one point fewer than the horizon needs."""

    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        return [
            ForecastValue(timestamp=request.bucket_time(i), value=1.0)
            for i in range(request.expected_points - 1)
        ]


class MisalignedEngine(AnalysisEngine):
    """Returns the right number of points, shifted by half a bucket."""

    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        shift = request.bucket_span / 2
        return [
            ForecastValue(timestamp=request.bucket_time(i) + shift, value=1.0)
            for i in range(request.expected_points)
        ]


# =============================================================================
# Jobs and clock
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock a few minutes after the last processed bucket."""
    return ManualClock(NOW)


@pytest.fixture
def open_job() -> JobView:
    """Open hourly job with a day of processed buckets."""
    return JobView(
        job_id="cpu-hourly",
        state=JobState.OPEN,
        bucket_span=timedelta(hours=1),
        last_bucket_time=LAST_BUCKET_TIME,
        model_snapshot=HOURLY_SNAPSHOT,
    )


@pytest.fixture
def closed_job() -> JobView:
    """Closed hourly job."""
    return JobView(
        job_id="cpu-closed",
        state=JobState.CLOSED,
        bucket_span=timedelta(hours=1),
        last_bucket_time=LAST_BUCKET_TIME,
        model_snapshot=HOURLY_SNAPSHOT,
    )


@pytest.fixture
def empty_job() -> JobView:
    """Open job that has not processed any bucket yet."""
    return JobView(
        job_id="cpu-empty",
        state=JobState.OPEN,
        bucket_span=timedelta(hours=1),
    )


@pytest.fixture
def jobs(open_job: JobView, closed_job: JobView, empty_job: JobView) -> InMemoryJobProvider:
    """Job provider holding the open, closed and empty jobs."""
    return InMemoryJobProvider([open_job, closed_job, empty_job])


# =============================================================================
# Forecasting components
# =============================================================================


@pytest.fixture
def defaults() -> ForecastDefaults:
    return ForecastDefaults()


@pytest.fixture
def store() -> InMemoryForecastStore:
    return InMemoryForecastStore()


@pytest.fixture
def engine() -> GatedEngine:
    """Engine that completes immediately."""
    return GatedEngine(open_gate=True)


@pytest.fixture
def gated_engine() -> GatedEngine:
    """Engine that blocks until the test opens its gate."""
    return GatedEngine()


def _build_coordinator(
    jobs: InMemoryJobProvider,
    store: InMemoryForecastStore,
    engine: AnalysisEngine,
    clock: ManualClock,
) -> ForecastCoordinator:
    return ForecastCoordinator(
        jobs=jobs,
        store=store,
        engine=engine,
        defaults=ForecastDefaults(),
        clock=clock,
        poll_interval=timedelta(milliseconds=5),
        wait_timeout=timedelta(seconds=5),
    )


@pytest.fixture
async def coordinator(
    jobs: InMemoryJobProvider,
    store: InMemoryForecastStore,
    engine: GatedEngine,
    clock: ManualClock,
) -> AsyncGenerator[ForecastCoordinator, None]:
    """Coordinator over in-memory jobs and store with an immediate engine."""
    coordinator = _build_coordinator(jobs, store, engine, clock)
    yield coordinator
    await coordinator.shutdown()


@pytest.fixture
async def gated_coordinator(
    jobs: InMemoryJobProvider,
    store: InMemoryForecastStore,
    gated_engine: GatedEngine,
    clock: ManualClock,
) -> AsyncGenerator[ForecastCoordinator, None]:
    """Coordinator whose forecasts stay STARTED until the gate opens."""
    coordinator = _build_coordinator(jobs, store, gated_engine, clock)
    yield coordinator
    await coordinator.shutdown()


@pytest.fixture
def coordinator_factory(
    jobs: InMemoryJobProvider,
    store: InMemoryForecastStore,
    clock: ManualClock,
) -> Callable[[AnalysisEngine], ForecastCoordinator]:
    """Build a coordinator around a custom engine."""

    def factory(engine: AnalysisEngine) -> ForecastCoordinator:
        return _build_coordinator(jobs, store, engine, clock)

    return factory


@pytest.fixture
def failing_engine() -> FailingEngine:
    return FailingEngine()


@pytest.fixture
def short_engine() -> ShortEngine:
    return ShortEngine()


@pytest.fixture
def misaligned_engine() -> MisalignedEngine:
    return MisalignedEngine()


@pytest.fixture
def baseline_engine() -> BaselineAnalysisEngine:
    return BaselineAnalysisEngine()


@pytest.fixture
def reaper(store: InMemoryForecastStore, clock: ManualClock) -> ExpiryReaper:
    return ExpiryReaper(store, interval=timedelta(milliseconds=10), clock=clock)


# =============================================================================
# Records
# =============================================================================


def _make_stats(
    forecast_id: str = "f1",
    job_id: str = "cpu-hourly",
    create_time: datetime = NOW,
    expiry: Expiry | None = None,
    duration: timedelta = timedelta(hours=3),
) -> ForecastRequestStats:
    """Build a STARTED stats record."""
    return ForecastRequestStats(
        job_id=job_id,
        forecast_id=forecast_id,
        create_time=create_time,
        duration=duration,
        bucket_span=timedelta(hours=1),
        expiry=expiry or Expiry.at(create_time + timedelta(days=14)),
    )


def _make_points(
    forecast_id: str = "f1",
    job_id: str = "cpu-hourly",
    count: int = 3,
    start: datetime = datetime(2024, 1, 2, 0, 0, tzinfo=UTC),
) -> list[Forecast]:
    """Build ``count`` contiguous hourly points."""
    return [
        Forecast(
            job_id=job_id,
            forecast_id=forecast_id,
            timestamp=start + i * timedelta(hours=1),
            bucket_span=timedelta(hours=1),
            predicted_value=float(i),
        )
        for i in range(count)
    ]


@pytest.fixture
def hourly_history() -> np.ndarray:
    """Two days of hourly values with a daily ramp 0..23."""
    return np.tile(np.arange(24, dtype=np.float64), 2)


@pytest.fixture
def make_stats() -> Callable[..., ForecastRequestStats]:
    """Factory for STARTED stats records."""
    return _make_stats


@pytest.fixture
def make_points() -> Callable[..., list[Forecast]]:
    """Factory for contiguous hourly points."""
    return _make_points


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
async def client(
    coordinator: ForecastCoordinator,
    reaper: ExpiryReaper,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose forecasting dependencies use the in-memory components."""
    app.dependency_overrides[get_forecast_coordinator] = lambda: coordinator
    app.dependency_overrides[get_expiry_reaper] = lambda: reaper

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def gated_client(
    gated_coordinator: ForecastCoordinator,
    reaper: ExpiryReaper,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose forecasts stay STARTED until the gate opens."""
    app.dependency_overrides[get_forecast_coordinator] = lambda: gated_coordinator
    app.dependency_overrides[get_expiry_reaper] = lambda: reaper

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
