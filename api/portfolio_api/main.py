"""
Portfolio Admin API - FastAPI Application

Main entry point for the FastAPI application.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import OperationalError

from portfolio_api.config import get_settings
from portfolio_api.core.cache import close_store
from portfolio_api.core.database import close_db, init_db
from portfolio_api.core.errors import AuthFlowError, LockedError, RateLimitedError
from portfolio_api.models.contracts.common import ErrorResponse
from portfolio_api.routers import (
    auth_router,
    health_router,
    otp_router,
    passkeys_router,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Portfolio Admin API...")
    settings = get_settings()

    # Initialize database
    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    # Store the admin PIN hash if configured
    if settings.admin_pin:
        await create_admin_record()

    logger.info(
        f"Portfolio Admin API started in {settings.environment} mode "
        f"(rp_id={settings.webauthn_rp_id}, possession={settings.possession_factor})"
    )

    yield

    # Shutdown
    logger.info("Shutting down Portfolio Admin API...")
    await close_store()
    await close_db()
    logger.info("Portfolio Admin API shutdown complete")


async def create_admin_record() -> None:
    """
    Hash PORTFOLIO_ADMIN_PIN into the admin record if no hash is stored yet.

    An existing hash is left alone so a PIN changed in the database survives
    restarts.
    """
    from portfolio_api.core.database import get_db_context
    from portfolio_api.core.security import hash_pin
    from portfolio_api.repositories.admin_record import AdminRecordRepository

    settings = get_settings()

    if not settings.admin_pin:
        return

    async with get_db_context() as db:
        repo = AdminRecordRepository(db)

        if await repo.get_pin_hash():
            logger.info("Admin PIN hash already stored")
            return

        await repo.set_pin_hash(hash_pin(settings.admin_pin))
        logger.info("Stored admin PIN hash from PORTFOLIO_ADMIN_PIN")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Portfolio Admin API",
        description="Admin login gate for the portfolio site",
        version="1.0.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # CORS Middleware
    # ==========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Security Headers
    # ==========================================================================

    @app.middleware("http")
    async def security_headers(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response

    # ==========================================================================
    # Global Exception Handlers
    # ==========================================================================

    @app.exception_handler(AuthFlowError)
    async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
        """Login failures -> status and code carried by the exception."""
        details = None
        headers = None
        if isinstance(exc, (LockedError, RateLimitedError)):
            details = {"retry_after": exc.retry_after}
            headers = {"Retry-After": str(exc.retry_after)}

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.code,
                message=exc.message,
                details=details,
            ).model_dump(),
            headers=headers,
        )

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(
        request: Request, exc: PydanticValidationError
    ) -> JSONResponse:
        """Pydantic model validation errors -> 422."""
        errors = exc.errors()
        field_errors = {".".join(str(loc) for loc in e["loc"]): e["msg"] for e in errors}
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="validation_error",
                message="Validation failed",
                details={"fields": field_errors},
            ).model_dump(),
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        """Database connection issues -> 503."""
        logger.error(f"Database operational error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="service_unavailable",
                message="Service temporarily unavailable",
            ).model_dump(),
        )

    @app.exception_handler(RedisConnectionError)
    @app.exception_handler(RedisTimeoutError)
    async def redis_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Cache connection issues -> 503."""
        logger.error(f"Redis error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="service_unavailable",
                message="Service temporarily unavailable",
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions -> 500."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_error",
                message="An unexpected error occurred",
            ).model_dump(),
            headers=SECURITY_HEADERS,
        )

    # ==========================================================================
    # Register Routers
    # ==========================================================================
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(passkeys_router)
    app.include_router(otp_router)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "name": "Portfolio Admin API",
            "version": "1.0.0",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "portfolio_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
