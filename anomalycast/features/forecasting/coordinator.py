"""Forecast request lifecycle coordinator.

Orchestrates:
- Reading a consistent view of the target job
- Validation and expiry resolution
- The initial STARTED stats record
- Asynchronous hand-off to the analysis engine
- Exactly-once terminal writes (FINISHED with points, or FAILED)
- Polling-based waits for callers

CRITICAL: Submission never blocks on the engine, and engine failures are
recorded on the stats record, never raised back to the submitter.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Sequence
from datetime import timedelta

from anomalycast.core.exceptions import DatabaseError, ForecastTimeoutError, NotFoundError
from anomalycast.core.logging import bind_forecast_context, get_logger
from anomalycast.features.forecasting.domain import Forecast, ForecastRequestStats
from anomalycast.features.forecasting.engine import (
    AnalysisEngine,
    EngineError,
    EngineRequest,
    ForecastValue,
)
from anomalycast.features.forecasting.store import AbstractForecastStore, StoreError
from anomalycast.features.forecasting.validation import (
    ExpiryResolver,
    ForecastDefaults,
    ForecastValidator,
    no_data_error,
)
from anomalycast.features.jobs.provider import JobProvider
from anomalycast.shared.clock import Clock, SystemClock
from anomalycast.shared.timevalue import format_duration

logger = get_logger(__name__)


def forecast_not_found(job_id: str, forecast_id: str) -> NotFoundError:
    """Build the error raised for unknown (or reaped) forecasts."""
    return NotFoundError(
        message=f"No forecast [{forecast_id}] found for job [{job_id}]",
        details={"job_id": job_id, "forecast_id": forecast_id},
    )


def store_unavailable(operation: str, error: StoreError) -> DatabaseError:
    """Surface a caller-facing store failure as a 500 problem."""
    return DatabaseError(message=f"Failed to {operation}: {error}")


class ForecastCoordinator:
    """Owns the lifecycle of forecast requests.

    Each submission runs in its own asyncio task; tasks are kept in a set
    until done so they are not garbage collected mid-flight.
    """

    def __init__(
        self,
        jobs: JobProvider,
        store: AbstractForecastStore,
        engine: AnalysisEngine,
        defaults: ForecastDefaults | None = None,
        clock: Clock | None = None,
        poll_interval: timedelta = timedelta(milliseconds=100),
        wait_timeout: timedelta = timedelta(seconds=30),
    ) -> None:
        """Initialize the coordinator.

        Args:
            jobs: Read access to anomaly jobs.
            store: Forecast stats and points storage.
            engine: Forecast computation.
            defaults: Default duration and retention.
            clock: Source of create/end times.
            poll_interval: Default interval for wait_until_terminal.
            wait_timeout: Default timeout for wait_until_terminal.
        """
        self.jobs = jobs
        self.store = store
        self.engine = engine
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.wait_timeout = wait_timeout
        self._validator = ForecastValidator(defaults)
        self._resolver = ExpiryResolver(defaults)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        """Number of forecasts still being computed by this process."""
        return len(self._tasks)

    async def submit(
        self,
        job_id: str,
        duration: timedelta | None = None,
        expires_in: timedelta | None = None,
    ) -> str:
        """Validate a forecast request and start computing it.

        Args:
            job_id: Target anomaly job.
            duration: Forecast horizon, None for the configured default.
            expires_in: Retention, None for the default, zero to never expire.

        Returns:
            The new forecast_id.

        Raises:
            NotFoundError: If the job does not exist.
            InvalidJobStateError: If the job is not open or has no data.
            ValidationError: If duration or expires_in is out of bounds.
            DatabaseError: If the request cannot be recorded.
        """
        # One read captures the snapshot this forecast is computed against
        job = await self.jobs.get_job_view(job_id)

        concrete_duration = self._validator.validate(job, duration)
        if job.last_bucket_time is None:
            raise no_data_error(job_id)
        create_time = self.clock.now()
        expiry = self._resolver.resolve(create_time, expires_in)
        forecast_id = uuid.uuid4().hex

        stats = ForecastRequestStats(
            job_id=job_id,
            forecast_id=forecast_id,
            create_time=create_time,
            duration=concrete_duration,
            bucket_span=job.bucket_span,
            expiry=expiry,
        )
        try:
            await self.store.create_stats(stats)
        except StoreError as e:
            raise store_unavailable("record forecast request", e) from e

        request = EngineRequest(
            job_id=job_id,
            forecast_id=forecast_id,
            bucket_span=job.bucket_span,
            duration=concrete_duration,
            start_time=job.last_bucket_time + job.bucket_span,
            model_snapshot=job.model_snapshot,
        )
        task = asyncio.create_task(self._run_engine(request), name=f"forecast-{forecast_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "forecasting.forecast_submitted",
            job_id=job_id,
            forecast_id=forecast_id,
            duration=format_duration(concrete_duration),
            bucket_span=format_duration(job.bucket_span),
            expiry="never" if expiry.is_never else expiry.instant.isoformat(),  # type: ignore[union-attr]
            expected_points=request.expected_points,
        )

        return forecast_id

    async def on_engine_completion(
        self,
        job_id: str,
        forecast_id: str,
        points: Sequence[Forecast],
        processing_time_ms: float | None = None,
    ) -> bool:
        """Store the points and mark the forecast FINISHED.

        A second completion signal, or one for a forecast that already
        failed or was deleted, writes nothing.

        Returns:
            True if this call moved the forecast to FINISHED.
        """
        updated = await self.store.finish(
            job_id,
            forecast_id,
            points,
            end_time=self.clock.now(),
            processing_time_ms=processing_time_ms,
        )
        if updated is None:
            logger.warning(
                "forecasting.completion_ignored",
                job_id=job_id,
                forecast_id=forecast_id,
                reason="forecast absent or already terminal",
            )
            return False

        logger.info(
            "forecasting.forecast_finished",
            job_id=job_id,
            forecast_id=forecast_id,
            record_count=updated.record_count,
            processing_time_ms=processing_time_ms,
        )
        return True

    async def on_engine_failure(
        self,
        job_id: str,
        forecast_id: str,
        error: str,
        processing_time_ms: float | None = None,
    ) -> bool:
        """Mark the forecast FAILED with ``error`` as its message.

        Returns:
            True if this call moved the forecast to FAILED.
        """
        updated = await self.store.fail(
            job_id,
            forecast_id,
            error_message=error,
            end_time=self.clock.now(),
            processing_time_ms=processing_time_ms,
        )
        if updated is None:
            logger.warning(
                "forecasting.failure_ignored",
                job_id=job_id,
                forecast_id=forecast_id,
                error=error,
                reason="forecast absent or already terminal",
            )
            return False

        logger.info(
            "forecasting.forecast_failed",
            job_id=job_id,
            forecast_id=forecast_id,
            error=error,
        )
        return True

    async def get_stats(self, job_id: str) -> list[ForecastRequestStats]:
        """All forecast stats of a job, oldest first."""
        try:
            return await self.store.list_stats(job_id)
        except StoreError as e:
            raise store_unavailable("list forecasts", e) from e

    async def get_forecast_stats(self, job_id: str, forecast_id: str) -> ForecastRequestStats:
        """Stats of one forecast.

        Raises:
            NotFoundError: If the forecast does not exist.
        """
        try:
            stats = await self.store.get_stats(job_id, forecast_id)
        except StoreError as e:
            raise store_unavailable("read forecast stats", e) from e
        if stats is None:
            raise forecast_not_found(job_id, forecast_id)
        return stats

    async def get_forecast_with_points(
        self, job_id: str, forecast_id: str
    ) -> tuple[ForecastRequestStats, list[Forecast]]:
        """Stats and points of one forecast from a single store read.

        The points always match the returned status: none before FINISHED.

        Raises:
            NotFoundError: If the forecast does not exist.
        """
        try:
            found = await self.store.get_forecast(job_id, forecast_id)
        except StoreError as e:
            raise store_unavailable("read forecast points", e) from e
        if found is None:
            raise forecast_not_found(job_id, forecast_id)
        return found

    async def get_points(self, job_id: str, forecast_id: str) -> list[Forecast]:
        """Predicted points of one forecast in timestamp order.

        A forecast that has not finished yet has no points.

        Raises:
            NotFoundError: If the forecast does not exist.
        """
        _, points = await self.get_forecast_with_points(job_id, forecast_id)
        return points

    async def wait_until_terminal(
        self,
        job_id: str,
        forecast_id: str,
        timeout: timedelta | None = None,
        poll_interval: timedelta | None = None,
    ) -> ForecastRequestStats:
        """Poll the store until the forecast is FINISHED or FAILED.

        Timing out only gives up waiting; the computation carries on.

        Args:
            job_id: Owning job.
            forecast_id: Forecast to wait for.
            timeout: Longest time to wait (default from settings).
            poll_interval: Time between polls (default from settings).

        Returns:
            The terminal stats record.

        Raises:
            ForecastTimeoutError: If the forecast is still STARTED at the deadline.
            NotFoundError: If the forecast does not exist (or was reaped).
        """
        timeout = self.wait_timeout if timeout is None else timeout
        interval = (self.poll_interval if poll_interval is None else poll_interval).total_seconds()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout.total_seconds()

        while True:
            stats = await self.get_forecast_stats(job_id, forecast_id)
            if stats.status.is_terminal:
                return stats

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ForecastTimeoutError(
                    message=f"Timed out after [{format_duration(timeout)}] waiting for "
                    f"forecast [{forecast_id}] of job [{job_id}] to finish",
                    details={"job_id": job_id, "forecast_id": forecast_id},
                )
            await asyncio.sleep(min(interval, remaining))

    async def shutdown(self) -> None:
        """Cancel in-flight engine tasks at process shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("forecasting.coordinator_shutdown", cancelled=len(tasks))

    async def _run_engine(self, request: EngineRequest) -> None:
        """Compute one forecast and record its terminal state."""
        bind_forecast_context(request.job_id, request.forecast_id)
        start = time.perf_counter()

        try:
            values = await self.engine.forecast(request)
            points = self._to_points(request, values)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "forecasting.engine_failed",
                job_id=request.job_id,
                forecast_id=request.forecast_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=not isinstance(e, EngineError),
            )
            await self._record_failure(request, str(e) or type(e).__name__, elapsed_ms)
            return

        elapsed_ms = (time.perf_counter() - start) * 1000
        try:
            await self.on_engine_completion(
                request.job_id,
                request.forecast_id,
                points,
                processing_time_ms=elapsed_ms,
            )
        except StoreError as e:
            logger.error(
                "forecasting.result_write_failed",
                job_id=request.job_id,
                forecast_id=request.forecast_id,
                error=str(e),
                exc_info=True,
            )
            await self._record_failure(request, f"Failed to store forecast results: {e}", elapsed_ms)

    async def _record_failure(self, request: EngineRequest, error: str, elapsed_ms: float) -> None:
        try:
            await self.on_engine_failure(
                request.job_id,
                request.forecast_id,
                error,
                processing_time_ms=elapsed_ms,
            )
        except StoreError as e:
            # Nothing left to record it on; the record stays STARTED until it expires
            logger.error(
                "forecasting.failure_write_failed",
                job_id=request.job_id,
                forecast_id=request.forecast_id,
                error=str(e),
                exc_info=True,
            )

    def _to_points(
        self,
        request: EngineRequest,
        values: Sequence[ForecastValue],
    ) -> list[Forecast]:
        """Check the engine output shape and build the points to store.

        Raises:
            EngineError: If the count or any timestamp is off.
        """
        if len(values) != request.expected_points:
            raise EngineError(
                f"Engine produced [{len(values)}] points, expected [{request.expected_points}]"
            )

        points: list[Forecast] = []
        for i, value in enumerate(values):
            expected_time = request.bucket_time(i)
            if value.timestamp != expected_time:
                raise EngineError(
                    f"Engine point [{i}] is timestamped [{value.timestamp.isoformat()}], "
                    f"expected [{expected_time.isoformat()}]"
                )
            points.append(
                Forecast(
                    job_id=request.job_id,
                    forecast_id=request.forecast_id,
                    timestamp=value.timestamp,
                    bucket_span=request.bucket_span,
                    predicted_value=value.value,
                )
            )
        return points
