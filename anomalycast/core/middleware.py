"""Request correlation and access logging."""

import re
import time
import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from anomalycast.core.logging import get_logger, request_id_ctx

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied ids end up in logs and problem bodies
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")

# Polled every few seconds by orchestrators; logged at debug only
_QUIET_PATHS = frozenset({"/health", "/health/ready"})


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a well-formed caller id, otherwise mint a UUID4."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, logs it, and echoes the id in X-Request-ID.

    Long-polling ``_wait`` calls show up with their full duration in
    ``http.request_completed``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_ctx.set(request_id)
        path = request.url.path
        log = logger.debug if path in _QUIET_PATHS else logger.info
        start = time.perf_counter()

        try:
            log(
                "http.request_started",
                method=request.method,
                path=path,
                query=request.url.query or None,
            )

            response = await call_next(request)

            log(
                "http.request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_ctx.reset(token)
