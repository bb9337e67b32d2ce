"""Exception handlers converting every failure into the response envelope."""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from keygate_api.exceptions import ForbiddenError, KeyGateError, UnauthorizedError

logger = logging.getLogger(__name__)

# Safe error messages that can be shown to users
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    401: "Session required",
    403: "Access denied",
    404: "Resource not found",
    405: "Method not allowed",
    429: "Too many requests",
    500: "Internal server error",
}

# Checked in order; everything else in the domain taxonomy is a 400
DOMAIN_ERROR_STATUS: tuple[tuple[type[KeyGateError], int], ...] = (
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
)


def error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def status_for(exc: KeyGateError) -> int:
    """Resolve the HTTP status for a domain error."""
    for error_type, status_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _is_debug(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.debug)


def _get_cors_headers(request: Request) -> dict[str, str]:
    """Get CORS headers for error responses.

    Exception handlers for unhandled errors run outside the CORS middleware,
    so allowed origins must be echoed here.
    """
    origin = request.headers.get("origin")
    settings = getattr(request.app.state, "settings", None)
    if not origin or settings is None:
        return {}

    if origin in settings.cors_origins_list:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


def sanitize_validation_errors(errors: list[dict[str, Any]]) -> str:
    """Condense request validation errors into a short message.

    Only field names and messages are exposed, at most three of them.
    """
    safe_errors = []
    for error in errors:
        loc = error.get("loc", [])
        msg = error.get("msg", "Invalid value")
        field = loc[-1] if loc else "field"
        if isinstance(field, str) and not field.startswith("_"):
            safe_errors.append(f"{field}: {msg}")
    if safe_errors:
        return "; ".join(safe_errors[:3])
    return SAFE_ERROR_MESSAGES[400]


async def keygate_exception_handler(request: Request, exc: KeyGateError) -> JSONResponse:
    """Handle domain errors with their mapped status and message."""
    status_code = status_for(exc)
    if status_code >= status.HTTP_401_UNAUTHORIZED:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return error_response(status_code, exc.message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle malformed request bodies as 400 validation errors."""
    logger.warning("Validation error for %s: %s", request.url.path, exc.errors())
    return error_response(status.HTTP_400_BAD_REQUEST, sanitize_validation_errors(exc.errors()))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle framework HTTP errors (unknown routes, wrong methods)."""
    if isinstance(exc.detail, str) and _is_debug(request):
        message = exc.detail
    else:
        message = SAFE_ERROR_MESSAGES.get(exc.status_code, "Request failed")
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit hits, including a Retry-After header."""
    logger.warning("Rate limit exceeded on %s", request.url.path)
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        SAFE_ERROR_MESSAGES[429],
        headers={"Retry-After": "60"},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking information."""
    logger.error("Unhandled exception for %s: %s", request.url.path, exc, exc_info=True)

    message = f"{type(exc).__name__}: {exc}" if _is_debug(request) else SAFE_ERROR_MESSAGES[500]
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        message,
        headers=_get_cors_headers(request),
    )
