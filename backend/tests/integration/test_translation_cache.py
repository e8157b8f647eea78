"""Integration tests for translation caching and invalidation."""

import pytest
from fakeredis.aioredis import FakeRedis
from sqlalchemy.ext.asyncio import AsyncSession

from sitecms.config import settings
from sitecms.core.redis import CacheClient
from sitecms.modules.content.cache import TranslationCache, TranslationCacheKeys
from sitecms.modules.content.element_service import ContentElementService
from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.translation_service import TranslationService
from sitecms.modules.localization.models import Language
from sitecms.modules.localization.service import LanguageService


@pytest.fixture(params=["index", "pattern"])
def strategy(request: pytest.FixtureRequest) -> str:
    return request.param


@pytest.fixture
def service(
    translation_service: TranslationService, cache: CacheClient, strategy: str
) -> TranslationService:
    translation_service.cache = TranslationCache(cache, strategy=strategy)
    return translation_service


@pytest.mark.integration
class TestReadThrough:
    """Reads populate the cache."""

    async def test_lookup_by_id_is_cached_with_tags(
        self,
        translation_service: TranslationService,
        cache: CacheClient,
        redis_client: FakeRedis,
        english_heading: ContentTranslation,
    ) -> None:
        key = TranslationCacheKeys.by_id(english_heading.id)
        assert await cache.exists(key) is False

        await translation_service.get_translation_by_id(english_heading.id)

        assert await cache.exists(key) is True
        ttl = await cache.ttl(key)
        assert ttl is not None and 0 < ttl <= settings.cache_ttl_seconds
        members = await redis_client.smembers(
            f"test:tag:element:{english_heading.content_element_id}"
        )
        assert f"test:{key}" in members

    async def test_list_is_cached_under_owner_tag(
        self,
        translation_service: TranslationService,
        redis_client: FakeRedis,
        paragraph: ContentElement,
    ) -> None:
        """An empty list still depends on its element."""
        await translation_service.get_translations_by_content_element(paragraph.id)

        key = TranslationCacheKeys.by_element(paragraph.id, True)
        members = await redis_client.smembers(f"test:tag:element:{paragraph.id}")
        assert members == {f"test:{key}"}

    async def test_active_flag_gets_its_own_entry(
        self,
        translation_service: TranslationService,
        cache: CacheClient,
        english_heading: ContentTranslation,
    ) -> None:
        element_id = english_heading.content_element_id

        await translation_service.get_translations_by_content_element(element_id)

        assert await cache.exists(TranslationCacheKeys.by_element(element_id, True))
        assert not await cache.exists(TranslationCacheKeys.by_element(element_id, False))

    async def test_corrupted_entry_falls_back_to_database(
        self,
        translation_service: TranslationService,
        cache: CacheClient,
        english_heading: ContentTranslation,
    ) -> None:
        key = TranslationCacheKeys.by_id(english_heading.id)
        await cache.set(key, "{broken", ttl=60)

        result = await translation_service.get_translation_by_id(english_heading.id)

        assert result.content == "Welcome"
        assert await cache.get(key) == result.model_dump_json()


@pytest.mark.integration
class TestInvalidation:
    """Writes never leave stale entries behind, whatever the strategy."""

    async def test_update_is_visible_through_every_lookup(
        self,
        service: TranslationService,
        heading: ContentElement,
        english: Language,
    ) -> None:
        async def seen() -> list[str]:
            return [
                (await service.get_translation_by_id(created.id)).content,
                (await service.get_translation(heading.id, english.id)).content,
                *[t.content for t in await service.get_translations_by_content_element(heading.id)],
                *[t.content for t in await service.get_translations_by_language(english.id)],
            ]

        created = await service.create_translation(
            {"content": "Hello", "content_element": heading.id, "language": english.id}
        )
        assert await seen() == ["Hello"] * 4

        await service.update_translation(created.id, {"content": "Hi"})

        assert await seen() == ["Hi"] * 4

    async def test_create_refreshes_cached_lists(
        self,
        service: TranslationService,
        english_heading: ContentTranslation,
        german: Language,
    ) -> None:
        element_id = english_heading.content_element_id
        assert len(await service.get_translations_by_content_element(element_id)) == 1

        await service.create_translation(
            {"content": "Willkommen", "content_element": element_id, "language": german.id}
        )

        assert len(await service.get_translations_by_content_element(element_id)) == 2

    async def test_moving_pair_drops_old_pair_entry(
        self,
        service: TranslationService,
        english_heading: ContentTranslation,
        german: Language,
    ) -> None:
        element_id, english_id = english_heading.content_element_id, english_heading.language_id
        await service.get_translation(element_id, english_id)
        assert len(await service.get_translations_by_language(english_id)) == 1

        await service.update_translation(english_heading.id, {"language": german.id})

        assert await service.get_translations_by_language(english_id) == []
        assert len(await service.get_translations_by_language(german.id)) == 1

    async def test_soft_delete_drops_active_lists(
        self,
        service: TranslationService,
        english_heading: ContentTranslation,
    ) -> None:
        element_id = english_heading.content_element_id
        assert len(await service.get_translations_by_content_element(element_id)) == 1

        await service.delete_translation(english_heading.id)

        assert await service.get_translations_by_content_element(element_id) == []
        assert (await service.get_translation_by_id(english_heading.id)).is_active is False

    async def test_index_strategy_removes_tag_sets(
        self,
        translation_service: TranslationService,
        redis_client: FakeRedis,
        english_heading: ContentTranslation,
    ) -> None:
        element_id = english_heading.content_element_id
        await translation_service.get_translations_by_content_element(element_id)
        tag_key = f"test:tag:element:{element_id}"
        assert await redis_client.exists(tag_key)

        await translation_service.update_translation(english_heading.id, {"content": "Hi"})

        assert not await redis_client.exists(tag_key)


@pytest.mark.integration
class TestReferenceChanges:
    """Renaming a language or element refreshes the briefs embedded in cached translations."""

    async def test_language_rename(
        self,
        db_session: AsyncSession,
        cache: CacheClient,
        strategy: str,
        english_heading: ContentTranslation,
    ) -> None:
        translations = TranslationService(db_session, cache=cache)
        translations.cache = TranslationCache(cache, strategy=strategy)
        languages = LanguageService(db_session, cache=cache)
        languages.cache = TranslationCache(cache, strategy=strategy)
        language_id = english_heading.language_id

        cached = await translations.get_translation_by_id(english_heading.id)
        assert cached.language.name == "English"

        await languages.update(language_id, {"name": "British English"})

        cached = await translations.get_translation_by_id(english_heading.id)
        assert cached.language.name == "British English"

    async def test_element_rename(
        self,
        db_session: AsyncSession,
        cache: CacheClient,
        strategy: str,
        english_heading: ContentTranslation,
    ) -> None:
        translations = TranslationService(db_session, cache=cache)
        translations.cache = TranslationCache(cache, strategy=strategy)
        elements = ContentElementService(db_session, cache=cache)
        elements.cache = TranslationCache(cache, strategy=strategy)
        element_id, language_id = english_heading.content_element_id, english_heading.language_id

        listed = await translations.get_translations_by_language(language_id)
        assert listed[0].content_element.name == "hero-title"

        await elements.update(element_id, {"name": "hero-heading"})

        listed = await translations.get_translations_by_language(language_id)
        assert listed[0].content_element.name == "hero-heading"

    async def test_metadata_change_keeps_cache(
        self,
        translation_service: TranslationService,
        element_service: ContentElementService,
        cache: CacheClient,
        english_heading: ContentTranslation,
    ) -> None:
        key = TranslationCacheKeys.by_id(english_heading.id)
        await translation_service.get_translation_by_id(english_heading.id)

        await element_service.update(english_heading.content_element_id, {"metadata": {"x": 1}})

        assert await cache.exists(key)


@pytest.mark.integration
class TestDegradedCache:
    """The service keeps working without a usable cache."""

    async def test_unreachable_redis(
        self,
        db_session: AsyncSession,
        broken_cache: CacheClient,
        heading: ContentElement,
        english: Language,
    ) -> None:
        service = TranslationService(db_session, cache=broken_cache)

        created = await service.create_translation(
            {"content": "Hello", "content_element": heading.id, "language": english.id}
        )
        await service.update_translation(created.id, {"content": "Hi"})

        assert (await service.get_translation_by_id(created.id)).content == "Hi"
        assert [t.content for t in await service.get_translations_by_language(english.id)] == ["Hi"]

    async def test_without_cache(
        self,
        db_session: AsyncSession,
        heading: ContentElement,
        english: Language,
    ) -> None:
        service = TranslationService(db_session)

        created = await service.create_translation(
            {"content": "Hello", "content_element": heading.id, "language": english.id}
        )
        result = await service.bulk_upsert_translations(
            [{"content": "Hi", "content_element": str(heading.id), "language": str(english.id)}]
        )

        assert result.updated == 1
        assert (await service.get_translation_by_id(created.id)).content == "Hi"


@pytest.mark.integration
class TestTagIndexConcurrency:
    """Keys indexed while a tag is being invalidated stay reachable."""

    async def test_key_cached_during_invalidation_is_still_indexed(
        self,
        cache: CacheClient,
        redis_client: FakeRedis,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await cache.set("translation:pair:E:L", "stale", ttl=60, tags=["element:E"])
        delete = redis_client.delete
        interleaved = False

        async def delete_after_concurrent_read(*keys: str) -> int:
            nonlocal interleaved
            if not interleaved:
                interleaved = True
                await cache.set("translation:pair:E:L2", "fresh", ttl=60, tags=["element:E"])
            return await delete(*keys)

        monkeypatch.setattr(redis_client, "delete", delete_after_concurrent_read)

        assert await cache.invalidate_tags("element:E") == 1
        assert await cache.get("translation:pair:E:L") is None
        assert await cache.get("translation:pair:E:L2") == "fresh"

        await cache.invalidate_tags("element:E")

        assert await cache.get("translation:pair:E:L2") is None
