"""Request logging middleware for state-changing calls."""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from keygate_api.security.rate_limit import client_ip

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every mutating request with its outcome and client IP.

    The operation log itself is written by the services; this only leaves a
    trace in the process log.
    """

    # Methods that modify data
    LOGGED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        """Process the request and log it if it was a mutation."""
        if request.method not in self.LOGGED_METHODS:
            return await call_next(request)

        address = client_ip(request)
        response = await call_next(request)

        level = logging.INFO if response.status_code < 400 else logging.WARNING
        logger.log(
            level,
            "%s %s status=%s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            address,
        )

        return response
