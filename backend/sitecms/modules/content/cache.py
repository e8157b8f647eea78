"""Read-through cache for translation queries.

Key space:
    translation:id:<translation>
    translation:pair:<element>:<language>
    translations:element:<element>:active:<true|all>
    translations:language:<language>:active:<true|all>

Every entry is tagged with the element and language it depends on, so a
write touching element E or language L drops exactly the entries that could
hold stale data for them.
"""

from collections.abc import Iterable
from typing import Literal
from uuid import UUID

from pydantic import TypeAdapter

from sitecms.config import settings
from sitecms.core.logging import get_logger
from sitecms.core.redis import CacheClient
from sitecms.modules.content.schemas import TranslationResponse

logger = get_logger(__name__)

_translation_list = TypeAdapter(list[TranslationResponse])


def _active_flag(active_only: bool) -> str:
    return "true" if active_only else "all"


class TranslationCacheKeys:
    """Deterministic cache keys derived from query parameters."""

    @staticmethod
    def by_id(translation_id: UUID) -> str:
        return f"translation:id:{translation_id}"

    @staticmethod
    def by_pair(content_element_id: UUID, language_id: UUID) -> str:
        return f"translation:pair:{content_element_id}:{language_id}"

    @staticmethod
    def by_element(content_element_id: UUID, active_only: bool) -> str:
        return f"translations:element:{content_element_id}:active:{_active_flag(active_only)}"

    @staticmethod
    def by_language(language_id: UUID, active_only: bool) -> str:
        return f"translations:language:{language_id}:active:{_active_flag(active_only)}"


def element_tag(content_element_id: UUID) -> str:
    return f"element:{content_element_id}"


def language_tag(language_id: UUID) -> str:
    return f"language:{language_id}"


def translation_tag(translation_id: UUID) -> str:
    return f"translation:{translation_id}"


def _translation_tags(translation: TranslationResponse) -> list[str]:
    return [
        translation_tag(translation.id),
        element_tag(translation.content_element_id),
        language_tag(translation.language_id),
    ]


class TranslationCache:
    """Translation-specific facade over CacheClient.

    A missing client (Redis not configured) turns every call into a miss or
    a no-op, so services can always go through this class.
    """

    def __init__(
        self,
        client: CacheClient | None,
        ttl: int | None = None,
        strategy: Literal["index", "pattern"] | None = None,
    ) -> None:
        self.client = client
        self.ttl = ttl or settings.cache_ttl_seconds
        self.strategy = strategy or settings.cache_invalidation_strategy

    # ------------------------------------------------------------------
    # Single translations
    # ------------------------------------------------------------------

    async def get_one(self, key: str) -> TranslationResponse | None:
        raw = await self._get(key)
        if raw is None:
            return None
        try:
            return TranslationResponse.model_validate_json(raw)
        except ValueError as e:
            logger.warning("cache_decode_failed", key=key, error=str(e))
            return None

    async def set_one(self, key: str, translation: TranslationResponse) -> None:
        if self.client is None:
            return
        await self.client.set(
            key,
            translation.model_dump_json(),
            ttl=self.ttl,
            tags=_translation_tags(translation),
        )

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def get_many(self, key: str) -> list[TranslationResponse] | None:
        raw = await self._get(key)
        if raw is None:
            return None
        try:
            return _translation_list.validate_json(raw)
        except ValueError as e:
            logger.warning("cache_decode_failed", key=key, error=str(e))
            return None

    async def set_many(
        self,
        key: str,
        translations: list[TranslationResponse],
        owner_tag: str,
    ) -> None:
        if self.client is None:
            return
        tags = {owner_tag}
        for translation in translations:
            tags.update(_translation_tags(translation))
        await self.client.set(
            key,
            _translation_list.dump_json(translations).decode(),
            ttl=self.ttl,
            tags=sorted(tags),
        )

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate(
        self,
        content_element_ids: Iterable[UUID] = (),
        language_ids: Iterable[UUID] = (),
        translation_ids: Iterable[UUID] = (),
    ) -> None:
        """Drop every cached entry depending on the given ids.

        Best effort: failures are logged and never raised.
        """
        if self.client is None:
            return

        element_ids = {i for i in content_element_ids if i is not None}
        lang_ids = {i for i in language_ids if i is not None}
        trans_ids = {i for i in translation_ids if i is not None}
        if not (element_ids or lang_ids or trans_ids):
            return

        try:
            if self.strategy == "index":
                deleted = await self.client.invalidate_tags(
                    *(element_tag(i) for i in element_ids),
                    *(language_tag(i) for i in lang_ids),
                    *(translation_tag(i) for i in trans_ids),
                )
            else:
                deleted = await self._invalidate_by_pattern(
                    self.client, element_ids, lang_ids, trans_ids
                )
        except Exception as e:
            logger.warning("cache_invalidation_failed", error=str(e))
            return

        logger.debug(
            "translation_cache_invalidated",
            strategy=self.strategy,
            elements=len(element_ids),
            languages=len(lang_ids),
            translations=len(trans_ids),
            deleted=deleted,
        )

    @staticmethod
    async def _invalidate_by_pattern(
        client: CacheClient,
        element_ids: set[UUID],
        language_ids: set[UUID],
        translation_ids: set[UUID],
    ) -> int:
        """Scan-based invalidation; id-keyed entries cannot be matched by
        element or language, so they are only dropped when their id is known."""
        deleted = 0
        for element_id in element_ids:
            deleted += await client.delete_pattern(f"translations:element:{element_id}:*")
            deleted += await client.delete_pattern(f"translation:pair:{element_id}:*")
        for language_id in language_ids:
            deleted += await client.delete_pattern(f"translations:language:{language_id}:*")
            deleted += await client.delete_pattern(f"translation:pair:*:{language_id}")
        if translation_ids:
            deleted += await client.delete(
                *(TranslationCacheKeys.by_id(i) for i in translation_ids)
            )
        return deleted

    async def _get(self, key: str) -> str | None:
        if self.client is None:
            return None
        return await self.client.get(key)
