"""Analysis engine boundary and the reference baseline engine.

The coordinator hands an EngineRequest to an AnalysisEngine and expects
back exactly ``ceil(duration / bucket_span)`` values, the first at
``start_time`` and each next one a bucket span later. Anything that breaks
that shape is recorded as a failed forecast.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import numpy as np

from anomalycast.core.logging import get_logger
from anomalycast.features.forecasting.extrapolators import extrapolator_factory
from anomalycast.shared.timevalue import buckets_in

logger = get_logger(__name__)


class EngineError(Exception):
    """The analysis engine could not produce a forecast."""

    pass


@dataclass(frozen=True)
class EngineRequest:
    """Everything the engine needs, captured at submission time.

    Attributes:
        job_id: Owning anomaly job.
        forecast_id: Forecast being computed.
        bucket_span: Job bucket span.
        duration: Concrete forecast horizon.
        start_time: Timestamp of the first predicted bucket.
        model_snapshot: Opaque model state captured when the forecast was submitted.
    """

    job_id: str
    forecast_id: str
    bucket_span: timedelta
    duration: timedelta
    start_time: datetime
    model_snapshot: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def expected_points(self) -> int:
        return buckets_in(self.duration, self.bucket_span)

    def bucket_time(self, index: int) -> datetime:
        """Timestamp of the ``index``-th predicted bucket."""
        return self.start_time + index * self.bucket_span


@dataclass(frozen=True)
class ForecastValue:
    """One (timestamp, predicted value) pair produced by an engine."""

    timestamp: datetime
    value: float


class AnalysisEngine(ABC):
    """Abstract interface for forecast computation."""

    @abstractmethod
    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        """Extrapolate the model snapshot into future buckets.

        Args:
            request: Forecast parameters and model snapshot.

        Returns:
            Ordered predicted values, one per bucket.

        Raises:
            EngineError: If the snapshot cannot be extrapolated.
        """


class BaselineAnalysisEngine(AnalysisEngine):
    """Extrapolates per-bucket statistics kept in the model snapshot.

    Expected snapshot shape::

        {
            "bucket_values": [10.5, 11.0, ...],   # oldest first
            "method": "mean",                     # optional
            "window_size": 24,                    # moving_average only
            "season_length": 24,                  # seasonal_naive only
        }

    The numpy work runs in a worker thread to keep the event loop free.
    """

    def __init__(
        self,
        default_method: str = "mean",
        default_window_size: int = 24,
        default_season_length: int = 24,
    ) -> None:
        self.default_method = default_method
        self.default_window_size = default_window_size
        self.default_season_length = default_season_length

    async def forecast(self, request: EngineRequest) -> list[ForecastValue]:
        return await asyncio.to_thread(self._forecast_sync, request)

    def _forecast_sync(self, request: EngineRequest) -> list[ForecastValue]:
        snapshot = request.model_snapshot or {}
        raw_values = snapshot.get("bucket_values")
        if not raw_values:
            raise EngineError(
                f"Model snapshot of job [{request.job_id}] has no bucket values to extrapolate"
            )

        try:
            y = np.asarray(raw_values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EngineError(f"Model snapshot bucket values are not numeric: {e}") from e
        if y.ndim != 1 or not np.all(np.isfinite(y)):
            raise EngineError("Model snapshot bucket values must be a flat list of finite numbers")

        method = str(snapshot.get("method", self.default_method))
        try:
            extrapolator = extrapolator_factory(
                method,
                window_size=int(snapshot.get("window_size", self.default_window_size)),
                season_length=int(snapshot.get("season_length", self.default_season_length)),
            )
            predictions = extrapolator.fit(y).predict(request.expected_points)
        except ValueError as e:
            raise EngineError(str(e)) from e

        logger.debug(
            "forecasting.engine_extrapolated",
            job_id=request.job_id,
            forecast_id=request.forecast_id,
            method=method,
            n_observations=len(y),
            horizon=request.expected_points,
        )

        return [
            ForecastValue(timestamp=request.bucket_time(i), value=float(value))
            for i, value in enumerate(predictions)
        ]
