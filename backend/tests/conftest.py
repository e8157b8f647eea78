"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sitecms.core.base_model import Base
from sitecms.core.redis import CacheClient
from sitecms.main import create_app
from sitecms.modules.content.element_service import ContentElementService
from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.translation_service import TranslationService
from sitecms.modules.localization.models import Language
from sitecms.modules.localization.service import LanguageService
from tests.fixtures import (
    ContentElementFactory,
    ContentTranslationFactory,
    LanguageFactory,
    TEST_SUB_SECTION_ID,
    TEST_WEBSITE_ID,
    persist,
)

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[Any, None]:
    """In-memory SQLite engine with the schema created.

    A single shared connection keeps the database alive across sessions;
    foreign keys are enforced so cascades behave as on PostgreSQL.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the application session factory."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[FakeRedis, None]:
    """In-memory Redis isolated per test."""
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis_client: FakeRedis) -> CacheClient:
    return CacheClient(redis_client, prefix="test")


@pytest_asyncio.fixture
async def broken_cache() -> AsyncGenerator[CacheClient, None]:
    """Cache client whose Redis refuses every command."""
    server = FakeServer()
    server.connected = False
    client = FakeRedis(server=server, decode_responses=True)
    yield CacheClient(client, prefix="test")
    await client.aclose()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def translation_service(db_session: AsyncSession, cache: CacheClient) -> TranslationService:
    return TranslationService(db_session, cache=cache)


@pytest.fixture
def element_service(db_session: AsyncSession, cache: CacheClient) -> ContentElementService:
    return ContentElementService(db_session, cache=cache)


@pytest.fixture
def language_service(db_session: AsyncSession, cache: CacheClient) -> LanguageService:
    return LanguageService(db_session, cache=cache)


# ============================================================================
# Test Data Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def english(db_session: AsyncSession) -> Language:
    language = LanguageFactory(name="English", code="en", website_id=TEST_WEBSITE_ID)
    await persist(db_session, language)
    return language


@pytest_asyncio.fixture
async def german(db_session: AsyncSession) -> Language:
    language = LanguageFactory(name="German", code="de", website_id=TEST_WEBSITE_ID)
    await persist(db_session, language)
    return language


@pytest_asyncio.fixture
async def heading(db_session: AsyncSession) -> ContentElement:
    element = ContentElementFactory(
        name="hero-title", type="heading", sort_order=1, parent_id=TEST_SUB_SECTION_ID
    )
    await persist(db_session, element)
    return element


@pytest_asyncio.fixture
async def paragraph(db_session: AsyncSession) -> ContentElement:
    element = ContentElementFactory(
        name="hero-body", type="paragraph", sort_order=2, parent_id=TEST_SUB_SECTION_ID
    )
    await persist(db_session, element)
    return element


@pytest_asyncio.fixture
async def english_heading(
    db_session: AsyncSession, heading: ContentElement, english: Language
) -> ContentTranslation:
    translation = ContentTranslationFactory(
        content="Welcome", content_element_id=heading.id, language_id=english.id
    )
    await persist(db_session, translation)
    return translation


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac
