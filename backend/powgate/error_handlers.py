"""
Global exception handlers.

Every failure leaves as the {success, reason, meta} envelope:
    - InvalidHints, RequestValidationError -> 400 malformed
    - HTTPException 400 (unparseable body) -> 400 malformed
    - Exception (catch-all) -> 500 internal-error, details only in server logs

The catch-all runs outside CORSMiddleware, so it sets the CORS headers itself.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from powgate.config import settings
from powgate.middleware.logging import CORRELATION_ID_HEADER, elapsed_ms
from powgate.models.verification import ResultMeta, VerificationReason, VerificationResult
from powgate.services.errors import InvalidHints

logger = structlog.get_logger()


def cors_headers(request: Request) -> dict[str, str]:
    """CORS headers for a cross-origin request, mirroring the CORSMiddleware config."""
    origin = request.headers.get("origin")
    if not origin:
        return {}
    if "*" in settings.cors_origins:
        allow_origin = "*"
    elif origin in settings.cors_origins:
        allow_origin = origin
    else:
        return {}
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Expose-Headers": CORRELATION_ID_HEADER,
    }
    if allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


def failure_response(
    request: Request, status_code: int, reason: VerificationReason
) -> JSONResponse:
    """Build the failure envelope for request, tagged with its correlation id."""
    result = VerificationResult(
        success=False,
        reason=reason,
        meta=ResultMeta(
            request_id=getattr(request.state, "request_id", "unknown"),
            processing_time_ms=elapsed_ms(request),
        ),
    )
    response = JSONResponse(status_code=status_code, content=result.to_dict())
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        response.headers[CORRELATION_ID_HEADER] = correlation_id
    return response


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(InvalidHints)
    async def invalid_hints_handler(request: Request, exc: InvalidHints):
        logger.info("invalid_hints", path=request.url.path, error=str(exc))
        return failure_response(request, status.HTTP_400_BAD_REQUEST, VerificationReason.MALFORMED)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "request_malformed",
            path=request.url.path,
            fields=[".".join(str(loc) for loc in e["loc"]) for e in exc.errors()],
        )
        return failure_response(request, status.HTTP_400_BAD_REQUEST, VerificationReason.MALFORMED)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # FastAPI raises a bare 400 when the body cannot be parsed at all
        if exc.status_code == status.HTTP_400_BAD_REQUEST:
            logger.info("request_body_unparseable", path=request.url.path)
            return failure_response(
                request, status.HTTP_400_BAD_REQUEST, VerificationReason.MALFORMED
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all; never leaks internal details."""
        logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
        response = failure_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, VerificationReason.INTERNAL_ERROR
        )
        response.headers.update(cors_headers(request))
        return response
