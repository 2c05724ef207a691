"""Application exceptions and their FastAPI handlers.

Each exception class fixes its error code and HTTP status; handlers render
them as RFC 7807 Problem Details. Messages are returned verbatim, so they
are written for the API caller.
"""

from typing import Any, ClassVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from anomalycast.core.logging import get_logger
from anomalycast.core.problem_details import ProblemDetailResponse, problem_response

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class AnomalyCastError(Exception):
    """Base exception for AnomalyCast application errors.

    Subclasses set ``code`` and ``status_code``; ``details`` carries
    structured context for logs (``job_id`` and ``forecast_id`` are also
    exposed on the problem body).
    """

    code: ClassVar[str] = "INTERNAL_ERROR"
    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title, e.g. INVALID_JOB_STATE -> 'Invalid Job State'."""
        return self.code.replace("_", " ").title()


class NotFoundError(AnomalyCastError):
    """A job or forecast does not exist (or has already been reaped)."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ValidationError(AnomalyCastError):
    """A forecast request failed validation against the job configuration.

    Duration errors follow the ``[duration] must be ...: [<value>/<limit>]``
    shape.
    """

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class InvalidJobStateError(AnomalyCastError):
    """The job is not in a state that allows the requested operation."""

    code = "INVALID_JOB_STATE"
    status_code = 409
    default_message = "Invalid job state"


class ConflictError(AnomalyCastError):
    """A job id that is already taken."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Resource conflict"


class DatabaseError(AnomalyCastError):
    code = "DATABASE_ERROR"
    status_code = 500
    default_message = "Database operation failed"


class ForecastTimeoutError(AnomalyCastError, TimeoutError):
    """Waiting for a forecast to reach a terminal status took too long.

    Raised on the caller side only; the computation keeps going and may
    still finish later.
    """

    code = "TIMEOUT"
    status_code = 504
    default_message = "Timed out waiting for forecast"


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def anomalycast_exception_handler(
    request: Request,
    exc: AnomalyCastError,
) -> ProblemDetailResponse:
    """Render an AnomalyCastError as a problem detail.

    Client errors log at warning level, server errors at error level.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        path=str(request.url.path),
        details=exc.details,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        context=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> ProblemDetailResponse:
    """Render routing errors (unknown path, wrong method) as problem details."""
    code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    logger.info(
        "app.http_error",
        status_code=exc.status_code,
        method=request.method,
        path=str(request.url.path),
    )

    response = problem_response(
        status=exc.status_code,
        title=code.replace("_", " ").title(),
        detail=str(exc.detail),
        error_code=code,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Handle request validation errors with field-level detail.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        422 problem detail with an ``errors`` list.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part not in ("body", "query", "path"))
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s). "
        "Check the 'errors' field for details.",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Catch-all: log with traceback, hide the message from the caller."""
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Please try again later or "
        "contact support with the request_id.",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(AnomalyCastError, anomalycast_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
