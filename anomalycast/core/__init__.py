"""Core infrastructure: config, database, logging, middleware, exceptions."""

from anomalycast.core.config import Settings, get_settings
from anomalycast.core.database import Base, get_db, get_session_maker
from anomalycast.core.exceptions import (
    AnomalyCastError,
    ConflictError,
    DatabaseError,
    ForecastTimeoutError,
    InvalidJobStateError,
    NotFoundError,
    ValidationError,
)
from anomalycast.core.logging import get_logger, request_id_ctx

__all__ = [
    "AnomalyCastError",
    "Base",
    "ConflictError",
    "DatabaseError",
    "ForecastTimeoutError",
    "InvalidJobStateError",
    "NotFoundError",
    "Settings",
    "ValidationError",
    "get_db",
    "get_logger",
    "get_session_maker",
    "get_settings",
    "request_id_ctx",
]
