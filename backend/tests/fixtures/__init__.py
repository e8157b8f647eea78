"""Test fixtures and factories."""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tests.fixtures.factories import (
    ContentElementFactory,
    ContentTranslationFactory,
    LanguageFactory,
)

TEST_WEBSITE_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_SUB_SECTION_ID = UUID("00000000-0000-0000-0000-000000000002")


async def persist(db_session: AsyncSession, *objects: Any) -> None:
    """Store objects and commit, as data written by an earlier request."""
    db_session.add_all(objects)
    await db_session.commit()


__all__ = [
    "ContentElementFactory",
    "ContentTranslationFactory",
    "LanguageFactory",
    "TEST_SUB_SECTION_ID",
    "TEST_WEBSITE_ID",
    "persist",
]
