"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, Callable, ParamSpec, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sitecms.config import settings
from sitecms.core.exceptions import AppException, DatabaseError
from sitecms.core.logging import get_logger

logger = get_logger(__name__)


def _connect_args() -> dict[str, Any]:
    """Server-side timeouts bounding statements and idle transactions."""
    if not str(settings.database_url).startswith("postgresql+asyncpg"):
        return {}
    timeout = str(settings.database_statement_timeout_ms)
    return {
        "server_settings": {
            "statement_timeout": timeout,
            "idle_in_transaction_session_timeout": timeout,
        }
    }


# Create async engine
engine = create_async_engine(
    str(settings.database_url),
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
    connect_args=_connect_args(),
)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions outside of FastAPI.

    Usage:
        async with get_db_context() as db:
            service = TranslationService(db, cache=get_cache_client())
            await service.bulk_upsert_translations(items)
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def driver_error_code(exc: SQLAlchemyError) -> str | None:
    """Extract the driver error code (SQLSTATE) from a wrapped DBAPI error."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code or getattr(exc, "code", None)


def is_unique_violation(exc: SQLAlchemyError) -> bool:
    """True for a unique/primary key violation on any supported driver."""
    if driver_error_code(exc) == "23505":
        return True
    return "unique" in str(getattr(exc, "orig", None) or exc).lower()


async def _safe_rollback(db: AsyncSession, operation: str) -> None:
    """Roll back without masking the error that triggered the rollback."""
    try:
        await db.rollback()
    except Exception as e:
        logger.error("transaction_rollback_failed", operation=operation, error=str(e))


# Type variables for transactional decorator
P = ParamSpec("P")
R = TypeVar("R")


def transactional(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator for automatic transaction management.

    Commits on success, rolls back on exception. Domain errors
    (AppException) propagate unchanged; any other SQLAlchemy error is
    wrapped into DatabaseError with the driver message and code preserved.
    Works with both standalone functions (with db arg) and service methods
    (with self.db).

    Usage:
        class TranslationService:
            def __init__(self, db: AsyncSession):
                self.db = db

            @transactional
            async def _create(self, data: TranslationCreate) -> ContentTranslation:
                translation = ContentTranslation(**data.model_dump())
                self.db.add(translation)
                return translation  # Auto-committed
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        db: AsyncSession | None = None

        for arg in args:
            if isinstance(arg, AsyncSession):
                db = arg
                break

        if db is None:
            db = kwargs.get("db")

        # Service classes keep the session on self.db
        if db is None and args:
            first_arg = args[0]
            if hasattr(first_arg, "db") and isinstance(first_arg.db, AsyncSession):
                db = first_arg.db

        if db is None:
            raise ValueError("No AsyncSession found in function arguments")

        operation = func.__qualname__
        try:
            result = await func(*args, **kwargs)
            await db.commit()
            return result
        except AppException:
            await _safe_rollback(db, operation)
            raise
        except SQLAlchemyError as e:
            await _safe_rollback(db, operation)
            logger.error(
                "transaction_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(
                f"Database operation failed: {operation}",
                original_error=str(getattr(e, "orig", None) or e),
                error_code=driver_error_code(e),
            ) from e
        except Exception:
            await _safe_rollback(db, operation)
            raise

    return wrapper  # type: ignore


async def check_db_connection() -> bool:
    """Check database connectivity for health checks."""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            return True
    except Exception:
        return False


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
