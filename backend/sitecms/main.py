"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sitecms.config import settings
from sitecms.core.database import check_db_connection, close_db
from sitecms.core.exceptions import AppException
from sitecms.core.logging import get_logger, setup_logging
from sitecms.core.redis import close_redis, init_redis
from sitecms.middleware import RequestLoggingMiddleware

# Setup logging on module load
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Check the database, connect Redis, and release both on shutdown.

    Startup never fails on an unreachable dependency: readiness reports it.
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        cache_invalidation=settings.cache_invalidation_strategy,
        bulk_batch_size=settings.bulk_upsert_batch_size,
    )

    if await check_db_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    # Initialize Redis; services run uncached without it
    try:
        await init_redis()
    except Exception as e:
        logger.warning("redis_init_failed", error=str(e))

    yield

    logger.info("application_shutting_down")
    await close_redis()
    await close_db()
    logger.info("application_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Content elements, languages and translations for websites",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    _setup_exception_handlers(app)
    _setup_routers(app)

    return app


def _setup_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle AppException with RFC 7807 format."""
        error_detail = exc.detail
        if isinstance(error_detail, dict):
            error_detail = {**error_detail, "instance": str(request.url.path)}

        if exc.status_code >= 500:
            logger.error("request_error", error_code=exc.error_code, error=exc.message)

        return JSONResponse(
            status_code=exc.status_code,
            content=error_detail,
            headers={"Content-Type": "application/problem+json"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("unhandled_exception", error=str(exc), path=request.url.path)

        return JSONResponse(
            status_code=500,
            content={
                "type": "https://api.sitecms.local/errors/internal_error",
                "title": "Internal Server Error",
                "status": 500,
                "detail": "An unexpected error occurred" if settings.is_production else str(exc),
                "instance": str(request.url.path),
            },
            headers={"Content-Type": "application/problem+json"},
        )


def _setup_routers(app: FastAPI) -> None:
    """Register API routers."""
    from sitecms.modules.health.router import router as health_router

    # Health checks (no prefix)
    app.include_router(health_router, tags=["Health"])


# Create app instance
app = create_app()
