"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from anomalycast.core.config import get_settings
from anomalycast.core.database import dispose_engine, get_session_maker
from anomalycast.core.exceptions import register_exception_handlers
from anomalycast.core.health import router as health_router
from anomalycast.core.logging import configure_logging, get_logger
from anomalycast.core.middleware import RequestIdMiddleware
from anomalycast.features.forecasting.deps import build_forecasting_runtime
from anomalycast.features.forecasting.routes import maintenance_router as forecast_maintenance_router
from anomalycast.features.forecasting.routes import router as forecasting_router
from anomalycast.features.jobs.routes import router as jobs_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown.

    Builds the forecasting runtime and starts the expiry reaper; on shutdown
    stops the reaper, cancels in-flight forecasts and closes the pool.

    Args:
        app: FastAPI application instance.

    Yields:
        None after startup, cleans up on shutdown.
    """
    settings = get_settings()

    # Startup
    configure_logging()
    logger.info(
        "app.startup_started",
        app_name=settings.app_name,
        app_env=settings.app_env,
        debug=settings.debug,
    )

    runtime = build_forecasting_runtime(settings, get_session_maker())
    app.state.forecasting = runtime
    if settings.forecast_reaper_enabled:
        runtime.reaper.start()

    logger.info("app.startup_completed")

    yield

    # Shutdown
    await runtime.reaper.stop()
    await runtime.coordinator.shutdown()
    await dispose_engine()
    logger.info("app.shutdown_completed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Forecast request lifecycle service for anomaly detection jobs",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (order matters - first added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"]
        if settings.is_development
        else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    # Exception handlers
    register_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(forecasting_router)
    app.include_router(forecast_maintenance_router)

    return app


app = create_app()
