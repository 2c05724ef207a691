"""RFC 7807 Problem Details for HTTP APIs.

Every error the service returns uses the ``application/problem+json``
media type so callers can branch on ``type``/``code`` instead of parsing
free text. The ``detail`` field carries the exact error message, which for
forecast validation errors is a compatibility surface.

Forecast errors also carry ``job_id`` and, where known, ``forecast_id`` as
extension members.

Reference: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from anomalycast.core.logging import request_id_ctx

ERROR_TYPE_BASE = "/errors"

# Extension members copied from exception details onto the problem body
EXTENSION_KEYS = ("job_id", "forecast_id")


def error_type_uri(code: str) -> str:
    """Problem type URI for an error code, e.g. INVALID_JOB_STATE -> /errors/invalid-job-state."""
    return f"{ERROR_TYPE_BASE}/{code.lower().replace('_', '-')}"


class ProblemDetail(BaseModel):
    """RFC 7807 problem body.

    Attributes:
        type: URI identifying the error type.
        title: Short summary of the problem type.
        status: HTTP status code.
        detail: Explanation of this occurrence (exact error message).
        instance: URI of this occurrence, derived from the request id.
        code: Machine-readable error code.
        request_id: Request correlation ID.
        job_id: Anomaly job the error concerns.
        forecast_id: Forecast the error concerns.
        errors: Field-level errors of a 422 response.
    """

    model_config = ConfigDict(extra="forbid")

    type: str = "about:blank"
    title: str
    status: int = Field(..., ge=400, le=599)
    detail: str | None = None
    instance: str | None = None
    code: str | None = None
    request_id: str | None = None
    job_id: str | None = None
    forecast_id: str | None = None
    errors: list[dict[str, Any]] | None = None


class ProblemDetailResponse(JSONResponse):
    """JSON response with RFC 7807 content type."""

    media_type = "application/problem+json"


def problem_response(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
    context: dict[str, Any] | None = None,
) -> ProblemDetailResponse:
    """Build a problem+json response for the current request.

    Args:
        status: HTTP status code.
        title: Short problem summary.
        detail: Exact error message.
        error_code: Machine-readable code, also used for the type URI.
        errors: Field-level validation errors.
        context: Exception details; only job_id/forecast_id are exposed.

    Returns:
        Response with the problem body and content type.
    """
    request_id = request_id_ctx.get()
    extensions = {
        key: str(context[key]) for key in EXTENSION_KEYS if context and context.get(key)
    }

    problem = ProblemDetail(
        type=error_type_uri(error_code),
        title=title,
        status=status,
        detail=detail,
        instance=f"/requests/{request_id}" if request_id else None,
        code=error_code,
        request_id=request_id,
        errors=errors,
        **extensions,
    )
    return ProblemDetailResponse(
        status_code=status,
        content=problem.model_dump(exclude_none=True),
    )
