"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from anomalycast.core.config import get_settings
from anomalycast.core.database import get_db
from anomalycast.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    database: Literal["connected", "disconnected"] | None = None
    reaper: Literal["running", "stopped"] | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Health status response.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Readiness check including database connectivity and the expiry reaper.

    A stopped reaper degrades the service when it is enabled in settings:
    forecasts are still served, expired ones are just kept longer.

    Args:
        request: Incoming request (for the forecasting runtime on app state).
        db: Database session dependency.

    Returns:
        Health status with database and reaper state.
    """
    logger.debug("health.readiness_check_started")

    runtime = getattr(request.app.state, "forecasting", None)
    reaper: Literal["running", "stopped"] | None = None
    if runtime is not None:
        reaper = "running" if runtime.reaper.is_running else "stopped"

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(status="unhealthy", database="disconnected", reaper=reaper)

    logger.info("health.database_connected", reaper=reaper)
    return HealthResponse(
        status="degraded"
        if reaper == "stopped" and get_settings().forecast_reaper_enabled
        else "ok",
        database="connected",
        reaper=reaper,
    )
