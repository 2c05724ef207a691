"""Periodic deletion of expired forecasts.

A sweep reads the clock once, collects every forecast whose timed expiry is
at or before that instant, and deletes each one (stats and points together).
Never-expiring forecasts are never collected. A failed delete is logged and
left for the next sweep.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from anomalycast.core.logging import get_logger
from anomalycast.features.forecasting.store import AbstractForecastStore, StoreError
from anomalycast.shared.clock import Clock, SystemClock
from anomalycast.shared.timevalue import format_duration

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one expiry sweep.

    Attributes:
        cutoff: The instant expiries were compared against.
        deleted: Forecasts removed by this sweep.
        failed: Forecasts whose deletion failed and will be retried.
    """

    cutoff: datetime
    deleted: int = 0
    failed: int = 0


class ExpiryReaper:
    """Deletes expired forecasts, on demand or on a fixed interval."""

    def __init__(
        self,
        store: AbstractForecastStore,
        interval: timedelta = timedelta(minutes=5),
        clock: Clock | None = None,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.store = store
        self.interval = interval
        self.clock = clock or SystemClock()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> SweepResult:
        """Delete every forecast expired at the current instant.

        Raises:
            StoreError: If expired forecasts cannot be listed.
        """
        cutoff = self.clock.now()
        expired = await self.store.find_expired(cutoff)

        deleted = 0
        failed = 0
        for job_id, forecast_id in expired:
            try:
                if await self.store.delete_forecast(job_id, forecast_id):
                    deleted += 1
            except StoreError as e:
                failed += 1
                logger.warning(
                    "forecasting.expired_delete_failed",
                    job_id=job_id,
                    forecast_id=forecast_id,
                    error=str(e),
                )

        if expired:
            logger.info(
                "forecasting.expiry_sweep_completed",
                cutoff=cutoff.isoformat(),
                expired=len(expired),
                deleted=deleted,
                failed=failed,
            )

        return SweepResult(cutoff=cutoff, deleted=deleted, failed=failed)

    def start(self) -> None:
        """Start sweeping in the background (no-op if already running)."""
        if self.is_running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="forecast-expiry-reaper")
        logger.info("forecasting.reaper_started", interval=format_duration(self.interval))

    async def stop(self) -> None:
        """Stop the background loop and wait for it to exit."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("forecasting.reaper_stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.sweep()
            except Exception as e:
                logger.error("forecasting.expiry_sweep_failed", error=str(e), exc_info=True)
            await asyncio.sleep(self.interval.total_seconds())
