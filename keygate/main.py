"""
Keygate API - FastAPI Application

Main entry point for the FastAPI application.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keygate import __version__
from keygate.config import Settings, get_settings
from keygate.core.database import close_db, init_db
from keygate.core.exceptions import ConflictError, StoreUnavailableError
from keygate.core.gate import ApiKeyMiddleware
from keygate.models.contracts.common import ErrorResponse
from keygate.routers import api_keys_router, health_router

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting Keygate API...")
    settings = get_settings()

    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    if not settings.legacy_api_key:
        logger.info("Legacy API key not configured; only stored keys are accepted")

    logger.info(f"Keygate API started in {settings.environment} mode")

    yield

    logger.info("Shutting down Keygate API...")
    await close_db()
    logger.info("Keygate API shutdown complete")


def create_app(
    settings_override: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings_override: Optional settings (for testing); the gate otherwise
            reads the cached environment settings on every request
        session_factory: Optional session factory for the API key gate
            (defaults to the global one, created on first request)

    Returns:
        Configured FastAPI application instance
    """
    if settings_override is None:
        settings_provider = get_settings
    else:
        settings_provider = lambda: settings_override  # noqa: E731
    settings = settings_provider()

    app = FastAPI(
        title="Keygate API",
        description="API key management and request admission",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware (last added runs first)
    # ==========================================================================
    app.add_middleware(
        ApiKeyMiddleware,
        session_factory=session_factory,
        settings_provider=settings_provider,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Global Exception Handlers
    # ==========================================================================

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(
        request: Request, exc: PydanticValidationError
    ) -> JSONResponse:
        """Pydantic model validation errors -> 422."""
        errors = exc.errors()
        field_errors = {".".join(str(loc)
                                 for loc in e["loc"]): e["msg"] for e in errors}
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="validation_error",
                message="Validation failed",
                details={"fields": field_errors},
            ).model_dump(),
        )

    @app.exception_handler(ConflictError)
    async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
        """Key hash collision on issuance -> 409. Safe to retry."""
        logger.warning(f"Conflict: {exc}")
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(
                error="conflict",
                message="Resource already exists",
            ).model_dump(),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        """Database constraint violations -> 409."""
        detail = str(exc.orig) if exc.orig else str(exc)
        logger.warning(f"IntegrityError: {detail}")
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(
                error="conflict",
                message="Database constraint violation",
            ).model_dump(),
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(
        request: Request, exc: StoreUnavailableError
    ) -> JSONResponse:
        """Key store failure or timeout -> 503."""
        logger.error(f"Key store unavailable: {exc}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="service_unavailable",
                message="Service temporarily unavailable",
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
        )

    # ==========================================================================
    # Register Routers
    # ==========================================================================
    app.include_router(health_router)
    app.include_router(api_keys_router)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "name": "Keygate API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Create app instance
app = create_app()


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "keygate.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    run()
