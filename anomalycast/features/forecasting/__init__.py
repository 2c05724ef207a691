"""Forecast request lifecycle for anomaly jobs.

Exports:
    Domain:
        - ForecastStatus, Expiry, ForecastRequestStats, Forecast

    Request handling:
        - ForecastDefaults, ForecastValidator, ExpiryResolver
        - ForecastCoordinator: submit, observe and wait for forecasts

    Engine:
        - AnalysisEngine, BaselineAnalysisEngine, EngineRequest, EngineError

    Storage:
        - AbstractForecastStore, InMemoryForecastStore, SqlAlchemyForecastStore

    Retention:
        - ExpiryReaper, SweepResult
"""

from anomalycast.features.forecasting.coordinator import ForecastCoordinator
from anomalycast.features.forecasting.deps import (
    ForecastingRuntime,
    build_forecast_store,
    build_forecasting_runtime,
)
from anomalycast.features.forecasting.domain import (
    Expiry,
    ExpiryKind,
    Forecast,
    ForecastRequestStats,
    ForecastStatus,
)
from anomalycast.features.forecasting.engine import (
    AnalysisEngine,
    BaselineAnalysisEngine,
    EngineError,
    EngineRequest,
    ForecastValue,
)
from anomalycast.features.forecasting.reaper import ExpiryReaper, SweepResult
from anomalycast.features.forecasting.routes import maintenance_router, router
from anomalycast.features.forecasting.store import (
    AbstractForecastStore,
    DuplicateForecastError,
    InMemoryForecastStore,
    SqlAlchemyForecastStore,
    StoreError,
)
from anomalycast.features.forecasting.validation import (
    ExpiryResolver,
    ForecastDefaults,
    ForecastValidator,
)

__all__ = [
    "AbstractForecastStore",
    "AnalysisEngine",
    "BaselineAnalysisEngine",
    "DuplicateForecastError",
    "EngineError",
    "EngineRequest",
    "Expiry",
    "ExpiryKind",
    "ExpiryReaper",
    "ExpiryResolver",
    "Forecast",
    "ForecastCoordinator",
    "ForecastDefaults",
    "ForecastRequestStats",
    "ForecastStatus",
    "ForecastValidator",
    "ForecastValue",
    "ForecastingRuntime",
    "InMemoryForecastStore",
    "SqlAlchemyForecastStore",
    "StoreError",
    "SweepResult",
    "build_forecast_store",
    "build_forecasting_runtime",
    "maintenance_router",
    "router",
]
