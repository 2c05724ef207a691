"""Forecast API routes.

Submission returns as soon as the request is accepted; computation happens
in the background and is observed through the stats endpoints.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status

from anomalycast.core.exceptions import DatabaseError, ValidationError
from anomalycast.core.logging import get_logger
from anomalycast.features.forecasting.coordinator import ForecastCoordinator
from anomalycast.features.forecasting.deps import get_expiry_reaper, get_forecast_coordinator
from anomalycast.features.forecasting.reaper import ExpiryReaper
from anomalycast.features.forecasting.store import StoreError
from anomalycast.features.forecasting.schemas import (
    ForecastAcknowledgement,
    ForecastPointListResponse,
    ForecastPointResponse,
    ForecastRequest,
    ForecastStatsListResponse,
    ForecastStatsResponse,
    SweepResponse,
)
from anomalycast.shared.timevalue import parse_duration

logger = get_logger(__name__)

router = APIRouter(prefix="/anomaly-jobs/{job_id}", tags=["forecasts"])
maintenance_router = APIRouter(prefix="/forecasts", tags=["forecasts"])


@router.post(
    "/_forecast",
    response_model=ForecastAcknowledgement,
    status_code=status.HTTP_200_OK,
    summary="Request a forecast",
    description="""
Start a forecast for an open job and return its id immediately.

**Defaults:** `duration` is 1d and `expires_in` is 14d. `expires_in: "0"` keeps
the results forever.

**Error Handling:**
- Returns 404 if the job does not exist
- Returns 409 if the job is not open or has processed no data
- Returns 400 if `duration` is shorter than the bucket span or longer than the maximum

Example:
```json
{"duration": "3h", "expires_in": "24h"}
```
""",
)
async def submit_forecast(
    job_id: str,
    request: ForecastRequest | None = None,
    coordinator: ForecastCoordinator = Depends(get_forecast_coordinator),
) -> ForecastAcknowledgement:
    """Submit a forecast request."""
    request = request or ForecastRequest()
    forecast_id = await coordinator.submit(
        job_id,
        duration=request.duration,
        expires_in=request.expires_in,
    )
    return ForecastAcknowledgement(forecast_id=forecast_id)


@router.get(
    "/forecasts",
    response_model=ForecastStatsListResponse,
    summary="List forecasts of a job",
)
async def list_forecasts(
    job_id: str,
    coordinator: ForecastCoordinator = Depends(get_forecast_coordinator),
) -> ForecastStatsListResponse:
    """List forecast stats for a job, oldest first."""
    stats = await coordinator.get_stats(job_id)
    return ForecastStatsListResponse(
        forecasts=[ForecastStatsResponse.from_domain(s) for s in stats],
        count=len(stats),
    )


@router.get(
    "/forecasts/{forecast_id}",
    response_model=ForecastStatsResponse,
    summary="Get forecast stats",
)
async def get_forecast(
    job_id: str,
    forecast_id: str,
    coordinator: ForecastCoordinator = Depends(get_forecast_coordinator),
) -> ForecastStatsResponse:
    """Get one forecast's lifecycle record."""
    stats = await coordinator.get_forecast_stats(job_id, forecast_id)
    return ForecastStatsResponse.from_domain(stats)


@router.get(
    "/forecasts/{forecast_id}/points",
    response_model=ForecastPointListResponse,
    summary="Get forecast points",
    description="Predicted points in timestamp order. Empty until the forecast finishes.",
)
async def get_forecast_points(
    job_id: str,
    forecast_id: str,
    coordinator: ForecastCoordinator = Depends(get_forecast_coordinator),
) -> ForecastPointListResponse:
    """Get the predicted points of a forecast."""
    stats, points = await coordinator.get_forecast_with_points(job_id, forecast_id)
    return ForecastPointListResponse(
        job_id=job_id,
        forecast_id=forecast_id,
        status=stats.status,
        points=[ForecastPointResponse.from_domain(p) for p in points],
        count=len(points),
    )


@router.post(
    "/forecasts/{forecast_id}/_wait",
    response_model=ForecastStatsResponse,
    summary="Wait for a forecast to finish",
    description="""
Block until the forecast is finished or failed, then return its stats.

Returns 504 if it is still running when `timeout` elapses. The forecast itself
keeps running.
""",
)
async def wait_for_forecast(
    job_id: str,
    forecast_id: str,
    timeout: str | None = Query(
        None,
        description="Longest time to wait, e.g. '30s'. Defaults to the configured wait timeout.",
    ),
    coordinator: ForecastCoordinator = Depends(get_forecast_coordinator),
) -> ForecastStatsResponse:
    """Wait until a forecast reaches a terminal status."""
    wait_timeout: timedelta | None = None
    if timeout is not None:
        try:
            wait_timeout = parse_duration(timeout)
        except ValueError as e:
            raise ValidationError(message=f"[timeout] {e}") from e
        if wait_timeout < timedelta(0):
            raise ValidationError(message=f"[timeout] must be non-negative: [{timeout}]")

    stats = await coordinator.wait_until_terminal(job_id, forecast_id, timeout=wait_timeout)
    return ForecastStatsResponse.from_domain(stats)


@maintenance_router.post(
    "/_delete_expired",
    response_model=SweepResponse,
    summary="Delete expired forecasts",
    description="Run one expiry sweep now instead of waiting for the next scheduled one.",
)
async def delete_expired_forecasts(
    reaper: ExpiryReaper = Depends(get_expiry_reaper),
) -> SweepResponse:
    """Run an expiry sweep."""
    try:
        result = await reaper.sweep()
    except StoreError as e:
        raise DatabaseError(message=f"Failed to find expired forecasts: {e}") from e
    logger.info(
        "forecasting.manual_sweep_completed",
        deleted=result.deleted,
        failed=result.failed,
    )
    return SweepResponse.from_result(result)
