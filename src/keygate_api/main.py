"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from keygate_api.config import Settings, get_settings
from keygate_api.exceptions import KeyGateError
from keygate_api.middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    keygate_exception_handler,
    rate_limit_exceeded_handler,
    validation_exception_handler,
)
from keygate_api.middleware.request_logging import RequestLoggingMiddleware
from keygate_api.models.dto.envelope import ApiResponse
from keygate_api.routers import admin, auth, keys
from keygate_api.security.rate_limit import limiter
from keygate_api.services.account_service import AccountServiceClient
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.tasks.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, max-age=0"
        response.headers.setdefault("Vary", "Accept, Authorization, Origin")
        # Strict Transport Security (HSTS) - only outside debug
        if not request.app.state.settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings

    # Startup
    persistence = PersistenceGateway(settings.data_file, debug=settings.debug)
    store = persistence.load()
    app.state.persistence = persistence
    app.state.store = store
    if app.state.account_service is None:
        app.state.account_service = AccountServiceClient.from_settings(settings)

    if not settings.admin_key:
        logger.warning("ADMIN_KEY is not set, admin key login is disabled")

    await start_scheduler(store, persistence, settings)
    yield
    # Shutdown
    await stop_scheduler()
    await persistence.save(store)
    await app.state.account_service.close()


def create_app(
    settings: Settings | None = None,
    account_service: AccountServiceClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones
        account_service: Account service client to use instead of building one
    """
    config = settings or get_settings()

    app = FastAPI(
        title=config.app_name,
        version="0.1.0",
        description="License key gate API",
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )
    app.state.settings = config
    app.state.account_service = account_service

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Every failure leaves as a {success: false, message} envelope
    app.add_exception_handler(KeyGateError, keygate_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    allowed_origins = config.cors_origins_list
    if "*" in allowed_origins:
        raise ValueError(
            "CORS_ORIGINS cannot contain '*' wildcard when allow_credentials=True. "
            "Specify explicit origins."
        )

    # Middleware runs in reverse order of addition: CORS first on requests
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Session-Id", "sessionid"],
    )

    # Include routers
    app.include_router(auth.router, prefix="/api", tags=["Authentication"])
    app.include_router(keys.router, prefix="/api", tags=["License Keys"])
    app.include_router(admin.router, prefix="/api", tags=["Admin"])

    @app.get("/health", response_model=ApiResponse[dict])
    async def health_check(request: Request) -> ApiResponse[dict]:
        """Health check endpoint with state counters."""
        store = request.app.state.store
        return ApiResponse(
            data={
                "status": "ok",
                "keys": len(store.license_keys),
                "boundUsers": len(store.user_key_bindings),
                "sessions": len(store.active_sessions),
                "logs": len(store.operation_logs),
                "lastSave": store.last_save.isoformat() if store.last_save else None,
            }
        )

    return app


app = create_app()
