"""Pydantic schemas for forecast endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from anomalycast.features.forecasting.domain import (
    Forecast,
    ForecastRequestStats,
    ForecastStatus,
)
from anomalycast.features.forecasting.reaper import SweepResult
from anomalycast.shared.schemas import CompactDuration

# =============================================================================
# Request Schemas
# =============================================================================


class ForecastRequest(BaseModel):
    """Request body for submitting a forecast.

    Both fields are optional; an empty body (or no body) asks for the
    default horizon and retention.
    """

    model_config = ConfigDict(extra="forbid")

    duration: CompactDuration | None = Field(
        default=None,
        description="Forecast horizon, e.g. '3h'. Defaults to 1d. Must be at "
        "least one bucket span and at most the configured maximum.",
    )
    expires_in: CompactDuration | None = Field(
        default=None,
        description="How long to keep the results, e.g. '7d'. Defaults to 14d. "
        "'0' keeps them forever.",
    )


# =============================================================================
# Response Schemas
# =============================================================================


class ForecastAcknowledgement(BaseModel):
    """Returned as soon as a forecast is accepted, before it is computed."""

    acknowledged: bool = True
    forecast_id: str


class ForecastStatsResponse(BaseModel):
    """Lifecycle record of one forecast request."""

    job_id: str
    forecast_id: str
    status: ForecastStatus
    create_time: datetime
    duration: CompactDuration
    bucket_span: CompactDuration
    expiry_time: datetime | None = Field(
        None,
        description="When the results become eligible for deletion. Null when "
        "never_expires is true.",
    )
    never_expires: bool = False
    record_count: int = Field(0, description="Number of predicted points (0 until finished).")
    error_message: str | None = None
    end_time: datetime | None = None
    processing_time_ms: float | None = None

    @classmethod
    def from_domain(cls, stats: ForecastRequestStats) -> ForecastStatsResponse:
        return cls(
            job_id=stats.job_id,
            forecast_id=stats.forecast_id,
            status=stats.status,
            create_time=stats.create_time,
            duration=stats.duration,
            bucket_span=stats.bucket_span,
            expiry_time=stats.expiry.instant,
            never_expires=stats.expiry.is_never,
            record_count=stats.record_count,
            error_message=stats.error_message,
            end_time=stats.end_time,
            processing_time_ms=stats.processing_time_ms,
        )


class ForecastStatsListResponse(BaseModel):
    """Forecasts of one job, oldest first."""

    forecasts: list[ForecastStatsResponse]
    count: int


class ForecastPointResponse(BaseModel):
    """One predicted bucket."""

    timestamp: datetime
    bucket_span: CompactDuration
    predicted_value: float

    @classmethod
    def from_domain(cls, point: Forecast) -> ForecastPointResponse:
        return cls(
            timestamp=point.timestamp,
            bucket_span=point.bucket_span,
            predicted_value=point.predicted_value,
        )


class ForecastPointListResponse(BaseModel):
    """Predicted points of one forecast in timestamp order."""

    job_id: str
    forecast_id: str
    status: ForecastStatus
    points: list[ForecastPointResponse]
    count: int


class SweepResponse(BaseModel):
    """Outcome of an expiry sweep."""

    cutoff: datetime
    deleted: int
    failed: int

    @classmethod
    def from_result(cls, result: SweepResult) -> SweepResponse:
        return cls(cutoff=result.cutoff, deleted=result.deleted, failed=result.failed)
