"""
Request logging middleware with correlation ID support.

Generates a unique correlation ID for each request, binds it to the structlog
context, and logs request start/completion with timing information. The
caller's X-Request-ID (when sent) becomes the requestId echoed in result meta.

Privacy: Never logs IPs, request bodies, tokens or signatures.
"""

import re
import secrets
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def generate_correlation_id() -> str:
    """Generate an 8-character correlation ID."""
    return secrets.token_hex(4)


def resolve_request_id(request: Request, correlation_id: str) -> str:
    """Use the caller's request id if it looks sane, else the correlation id."""
    supplied = request.headers.get(REQUEST_ID_HEADER)
    if supplied and _REQUEST_ID_RE.match(supplied):
        return supplied
    return correlation_id


def elapsed_ms(request: Request) -> float:
    """Milliseconds since the middleware saw this request."""
    started_at = getattr(request.state, "started_at", None)
    if started_at is None:
        return 0.0
    return round((time.perf_counter() - started_at) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs requests and adds correlation IDs.

    Logs:
    - request_started: method, path, correlation_id
    - request_completed: method, path, status_code, duration_ms, correlation_id
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = generate_correlation_id()
        start_time = time.perf_counter()

        request.state.correlation_id = correlation_id
        request.state.request_id = resolve_request_id(request, correlation_id)
        request.state.started_at = start_time

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id, request_id=request.state.request_id
        )

        logger = structlog.get_logger()

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000

            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers[CORRELATION_ID_HEADER] = correlation_id

            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round(duration_ms, 2),
                exc_info=True,
            )
            raise
