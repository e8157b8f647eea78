"""Translation service: CRUD and bulk upsert of content translations."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Row, Select, and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sitecms.config import settings
from sitecms.core.database import is_unique_violation, transactional
from sitecms.core.exceptions import (
    DuplicateTranslationError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)
from sitecms.core.logging import get_logger
from sitecms.core.redis import CacheClient
from sitecms.core.validation import error_summary, parse_id, parse_payload
from sitecms.modules.content.cache import (
    TranslationCache,
    TranslationCacheKeys,
    element_tag,
    language_tag,
)
from sitecms.modules.content.element_service import ContentElementService
from sitecms.modules.content.mappers import map_translation_to_response
from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.schemas import (
    BulkItemError,
    BulkUpsertResult,
    OperationResult,
    TranslationBulkItem,
    TranslationCreate,
    TranslationResponse,
    TranslationUpdate,
)
from sitecms.modules.localization.models import Language
from sitecms.modules.localization.service import LanguageService

logger = get_logger(__name__)

Pair = tuple[UUID, UUID]


@dataclass
class _BulkOutcome:
    """Running totals of a bulk upsert."""

    created: int = 0
    updated: int = 0
    errors: list[BulkItemError] = field(default_factory=list)
    element_ids: set[UUID] = field(default_factory=set)
    language_ids: set[UUID] = field(default_factory=set)
    translation_ids: set[UUID] = field(default_factory=set)

    def fail(self, index: int, reason: str) -> None:
        self.errors.append(BulkItemError(index=index, reason=reason))

    def record(self, translation: ContentTranslation, created: bool) -> None:
        if created:
            self.created += 1
        else:
            self.updated += 1
        self.element_ids.add(translation.content_element_id)
        self.language_ids.add(translation.language_id)
        self.translation_ids.add(translation.id)


class TranslationService:
    """Service for managing content translations.

    Reads go through the translation cache. Every mutation runs in a single
    transaction and drops the cache entries depending on it after commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheClient | None = None,
        batch_size: int | None = None,
        max_items: int | None = None,
    ) -> None:
        self.db = db
        self.cache = TranslationCache(cache)
        self.elements = ContentElementService(db)
        self.languages = LanguageService(db)
        self.batch_size = batch_size or settings.bulk_upsert_batch_size
        self.max_items = max_items or settings.bulk_upsert_max_items

    # ========== Queries ==========

    @staticmethod
    def _select_expanded() -> Select:
        """Translations joined with their language and content element."""
        return (
            select(ContentTranslation, Language, ContentElement)
            .join(Language, Language.id == ContentTranslation.language_id)
            .join(ContentElement, ContentElement.id == ContentTranslation.content_element_id)
        )

    @staticmethod
    def _row_to_response(row: Row) -> TranslationResponse:
        translation, language, element = row
        return map_translation_to_response(
            translation,
            languages={language.id: language},
            elements={element.id: element},
        )

    async def _expand(self, translations: list[ContentTranslation]) -> list[TranslationResponse]:
        """Attach references with one query per referenced table."""
        languages = await self.languages.get_by_ids(t.language_id for t in translations)
        elements = await self.elements.get_by_ids(t.content_element_id for t in translations)
        return [map_translation_to_response(t, languages, elements) for t in translations]

    async def _get_model(self, translation_id: UUID) -> ContentTranslation:
        stmt = select(ContentTranslation).where(ContentTranslation.id == translation_id)
        result = await self.db.execute(stmt)
        translation = result.scalar_one_or_none()

        if not translation:
            raise NotFoundError("Translation", translation_id)

        return translation

    async def _find_by_pair(self, element_id: UUID, language_id: UUID) -> ContentTranslation | None:
        stmt = select(ContentTranslation).where(
            ContentTranslation.content_element_id == element_id,
            ContentTranslation.language_id == language_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _require_references(self, element_id: UUID, language_id: UUID) -> None:
        if not await self.elements.exists(element_id):
            raise NotFoundError("Content element", element_id)
        if not await self.languages.exists(language_id):
            raise NotFoundError("Language", language_id)

    # ========== Reads ==========

    async def get_translation_by_id(self, translation_id: str | UUID) -> TranslationResponse:
        """Get translation by ID with language and content element expanded."""
        translation_id = parse_id(translation_id, "translation")

        key = TranslationCacheKeys.by_id(translation_id)
        cached = await self.cache.get_one(key)
        if cached is not None:
            return cached

        stmt = self._select_expanded().where(ContentTranslation.id == translation_id)
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            raise NotFoundError("Translation", translation_id)

        response = self._row_to_response(row)
        await self.cache.set_one(key, response)
        return response

    async def get_translation(
        self, content_element_id: str | UUID, language_id: str | UUID
    ) -> TranslationResponse:
        """Get the translation of a content element into a language."""
        element_id = parse_id(content_element_id, "content element", "content_element_id")
        language_id = parse_id(language_id, "language", "language_id")

        key = TranslationCacheKeys.by_pair(element_id, language_id)
        cached = await self.cache.get_one(key)
        if cached is not None:
            return cached

        stmt = self._select_expanded().where(
            ContentTranslation.content_element_id == element_id,
            ContentTranslation.language_id == language_id,
        )
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            await self._require_references(element_id, language_id)
            raise NotFoundError(
                f"Translation for content element {element_id} and language {language_id}"
            )

        response = self._row_to_response(row)
        await self.cache.set_one(key, response)
        return response

    async def get_translations_by_content_element(
        self, content_element_id: str | UUID, active_only: bool = True
    ) -> list[TranslationResponse]:
        """All translations of a content element, ordered by language name."""
        element_id = parse_id(content_element_id, "content element", "content_element_id")

        key = TranslationCacheKeys.by_element(element_id, active_only)
        cached = await self.cache.get_many(key)
        if cached is not None:
            return cached

        stmt = (
            self._select_expanded()
            .where(ContentTranslation.content_element_id == element_id)
            .order_by(Language.name, Language.code)
        )
        if active_only:
            stmt = stmt.where(ContentTranslation.is_active.is_(True))

        rows = (await self.db.execute(stmt)).all()
        if not rows and not await self.elements.exists(element_id):
            raise NotFoundError("Content element", element_id)

        translations = [self._row_to_response(row) for row in rows]
        await self.cache.set_many(key, translations, owner_tag=element_tag(element_id))
        return translations

    async def get_translations_by_language(
        self, language_id: str | UUID, active_only: bool = True
    ) -> list[TranslationResponse]:
        """All translations into a language, ordered by content element position."""
        language_id = parse_id(language_id, "language", "language_id")

        key = TranslationCacheKeys.by_language(language_id, active_only)
        cached = await self.cache.get_many(key)
        if cached is not None:
            return cached

        stmt = (
            self._select_expanded()
            .where(ContentTranslation.language_id == language_id)
            .order_by(ContentElement.sort_order, ContentElement.created_at)
        )
        if active_only:
            stmt = stmt.where(ContentTranslation.is_active.is_(True))

        rows = (await self.db.execute(stmt)).all()
        if not rows and not await self.languages.exists(language_id):
            raise NotFoundError("Language", language_id)

        translations = [self._row_to_response(row) for row in rows]
        await self.cache.set_many(key, translations, owner_tag=language_tag(language_id))
        return translations

    # ========== Mutations ==========

    async def create_translation(
        self, data: TranslationCreate | Mapping[str, Any]
    ) -> TranslationResponse:
        """Create a translation for a (content element, language) pair.

        Raises:
            ValidationError: malformed payload or identifiers
            NotFoundError: content element or language does not exist
            DuplicateTranslationError: the pair already has a translation
        """
        data = parse_payload(TranslationCreate, data, "Invalid translation data")
        translation = await self._create(data)

        # Lists of the element and language must pick up the new record
        await self.cache.invalidate(
            content_element_ids=[data.content_element],
            language_ids=[data.language],
        )

        logger.info(
            "translation_created",
            translation_id=str(translation.id),
            content_element_id=str(data.content_element),
            language_id=str(data.language),
        )
        return translation

    @transactional
    async def _create(self, data: TranslationCreate) -> TranslationResponse:
        await self._require_references(data.content_element, data.language)

        if await self._find_by_pair(data.content_element, data.language) is not None:
            raise DuplicateTranslationError(data.content_element, data.language)

        translation = ContentTranslation(
            id=uuid4(),
            content=data.content,
            content_element_id=data.content_element,
            language_id=data.language,
            is_active=data.is_active,
            extra_data=data.metadata or {},
        )
        self.db.add(translation)
        await self._flush_pair(data.content_element, data.language)
        await self.db.refresh(translation)

        return (await self._expand([translation]))[0]

    async def update_translation(
        self, translation_id: str | UUID, data: TranslationUpdate | Mapping[str, Any]
    ) -> TranslationResponse:
        """Update a translation, possibly moving it to another pair.

        Raises:
            ValidationError: malformed payload or identifiers
            NotFoundError: translation or a new reference does not exist
            DuplicateTranslationError: the new pair belongs to another record
        """
        translation_id = parse_id(translation_id, "translation")
        data = parse_payload(TranslationUpdate, data, "Invalid translation data")
        translation, previous = await self._update(translation_id, data)

        await self.cache.invalidate(
            content_element_ids={previous[0], translation.content_element_id},
            language_ids={previous[1], translation.language_id},
            translation_ids=[translation_id],
        )

        logger.info("translation_updated", translation_id=str(translation_id))
        return translation

    @transactional
    async def _update(
        self, translation_id: UUID, data: TranslationUpdate
    ) -> tuple[TranslationResponse, Pair]:
        translation = await self._get_model(translation_id)
        previous = (translation.content_element_id, translation.language_id)
        patch = data.model_dump(exclude_unset=True)

        element_id = patch.get("content_element") or translation.content_element_id
        language_id = patch.get("language") or translation.language_id
        if (element_id, language_id) != previous:
            await self._require_references(element_id, language_id)
            other = await self._find_by_pair(element_id, language_id)
            if other is not None and other.id != translation.id:
                raise DuplicateTranslationError(element_id, language_id)
            translation.content_element_id = element_id
            translation.language_id = language_id

        if patch.get("content") is not None:
            translation.content = patch["content"]
        if patch.get("is_active") is not None:
            translation.is_active = patch["is_active"]
        if "metadata" in patch:
            translation.extra_data = patch["metadata"]

        await self._flush_pair(element_id, language_id)
        await self.db.refresh(translation)

        return (await self._expand([translation]))[0], previous

    async def delete_translation(
        self, translation_id: str | UUID, hard_delete: bool = False
    ) -> OperationResult:
        """Deactivate a translation, or remove it when hard_delete is set."""
        translation_id = parse_id(translation_id, "translation")
        element_id, language_id = await self._delete(translation_id, hard_delete)

        await self.cache.invalidate(
            content_element_ids=[element_id],
            language_ids=[language_id],
            translation_ids=[translation_id],
        )

        logger.info(
            "translation_deleted",
            translation_id=str(translation_id),
            hard_delete=hard_delete,
        )
        if hard_delete:
            message = "Translation deleted successfully"
        else:
            message = "Translation deactivated successfully"
        return OperationResult(success=True, message=message)

    @transactional
    async def _delete(self, translation_id: UUID, hard_delete: bool) -> Pair:
        translation = await self._get_model(translation_id)
        pair = (translation.content_element_id, translation.language_id)

        if hard_delete:
            await self.db.delete(translation)
        else:
            translation.is_active = False
        await self.db.flush()

        return pair

    # ========== Bulk Upsert ==========

    async def bulk_upsert_translations(
        self, items: Sequence[TranslationBulkItem | Mapping[str, Any]]
    ) -> BulkUpsertResult:
        """Create or update many translations in one transaction.

        Items carrying an `id` update that record; the others are matched by
        (content element, language). Invalid items are reported by 1-based
        index and the valid ones are still committed. When no item succeeds
        nothing is committed and a ValidationError lists every failure.

        Raises:
            ValidationError: empty or oversized input, or no item succeeded
            TransactionConflictError: a concurrent writer created a colliding
                record; the whole batch is rolled back and may be retried
        """
        if not items:
            raise ValidationError("Translations array must not be empty")
        if len(items) > self.max_items:
            raise ValidationError(
                f"At most {self.max_items} translations can be upserted at once",
                errors=[{"field": "items", "message": f"got {len(items)} items"}],
            )

        outcome = await self._bulk_upsert(list(items))

        await self.cache.invalidate(
            content_element_ids=outcome.element_ids,
            language_ids=outcome.language_ids,
            translation_ids=outcome.translation_ids,
        )

        processed = outcome.created + outcome.updated
        logger.info(
            "translations_bulk_upserted",
            total=len(items),
            created=outcome.created,
            updated=outcome.updated,
            errors=len(outcome.errors),
        )

        if outcome.errors:
            message = (
                f"Processed {processed} translations with {len(outcome.errors)} errors: "
                f"{outcome.created} created, {outcome.updated} updated"
            )
        else:
            message = (
                f"Successfully processed {processed} translations: "
                f"{outcome.created} created, {outcome.updated} updated"
            )

        return BulkUpsertResult(
            success=processed > 0,
            message=message,
            created=outcome.created,
            updated=outcome.updated,
            errors=outcome.errors,
        )

    @transactional
    async def _bulk_upsert(
        self, items: list[TranslationBulkItem | Mapping[str, Any]]
    ) -> _BulkOutcome:
        """Validate every item, then resolve and write the valid ones chunk by chunk.

        Shape validation covers the whole input before the first flush. Reference
        checks and existing-record lookups are reads batched per chunk.
        """
        outcome = _BulkOutcome()

        valid: list[tuple[int, TranslationBulkItem]] = []
        for index, raw in enumerate(items, start=1):
            try:
                valid.append((index, TranslationBulkItem.model_validate(raw)))
            except PydanticValidationError as e:
                outcome.fail(index, error_summary(e))

        for start in range(0, len(valid), self.batch_size):
            await self._upsert_chunk(valid[start : start + self.batch_size], outcome)
            await self._flush_bulk()

        outcome.errors.sort(key=lambda error: error.index)
        if outcome.created + outcome.updated == 0:
            raise ValidationError(
                "No translations were processed",
                errors=[error.model_dump() for error in outcome.errors],
            )

        return outcome

    async def _upsert_chunk(
        self,
        valid: list[tuple[int, TranslationBulkItem]],
        outcome: _BulkOutcome,
    ) -> None:
        existing_elements = await self.elements.find_existing_ids(
            item.content_element for _, item in valid
        )
        existing_languages = await self.languages.find_existing_ids(
            item.language for _, item in valid
        )

        resolved: list[tuple[int, TranslationBulkItem]] = []
        for index, item in valid:
            reasons = []
            if item.content_element not in existing_elements:
                reasons.append(f"Content element {item.content_element} not found")
            if item.language not in existing_languages:
                reasons.append(f"Language {item.language} not found")
            if reasons:
                outcome.fail(index, "; ".join(reasons))
            else:
                resolved.append((index, item))
        if not resolved:
            return

        by_id, by_pair = await self._load_existing([item for _, item in resolved])

        for index, item in resolved:
            pair = (item.content_element, item.language)
            created = False

            if item.id is not None:
                translation = by_id.get(item.id)
                if translation is None:
                    outcome.fail(index, f"Translation with ID {item.id} not found for update")
                    continue
                owner = by_pair.get(pair)
                if owner is not None and owner is not translation:
                    outcome.fail(
                        index, "Translation for this content element and language already exists"
                    )
                    continue
                old_pair = (translation.content_element_id, translation.language_id)
                if by_pair.get(old_pair) is translation:
                    del by_pair[old_pair]
                outcome.element_ids.add(old_pair[0])
                outcome.language_ids.add(old_pair[1])
                translation.content_element_id, translation.language_id = pair
            else:
                translation = by_pair.get(pair)
                if translation is None:
                    created = True
                    translation = ContentTranslation(
                        id=uuid4(),
                        content_element_id=item.content_element,
                        language_id=item.language,
                    )
                    self.db.add(translation)

            translation.content = item.content
            translation.is_active = True if item.is_active is None else item.is_active
            translation.extra_data = item.metadata or {}

            by_pair[pair] = translation
            by_id[translation.id] = translation
            outcome.record(translation, created=created)

    async def _load_existing(
        self, items: list[TranslationBulkItem]
    ) -> tuple[dict[UUID, ContentTranslation], dict[Pair, ContentTranslation]]:
        """Stored translations addressed by the items, by id and by pair.

        Pairs are matched with a superset query on both columns and narrowed
        in memory.
        """
        element_ids = {item.content_element for item in items}
        language_ids = {item.language for item in items}
        target_ids = {item.id for item in items if item.id is not None}

        condition = and_(
            ContentTranslation.content_element_id.in_(element_ids),
            ContentTranslation.language_id.in_(language_ids),
        )
        if target_ids:
            condition = or_(condition, ContentTranslation.id.in_(target_ids))

        result = await self.db.execute(select(ContentTranslation).where(condition))
        translations = result.scalars().all()

        by_id = {t.id: t for t in translations}
        by_pair = {(t.content_element_id, t.language_id): t for t in translations}
        return by_id, by_pair

    # ========== Helpers ==========

    async def _flush_pair(self, element_id: UUID, language_id: UUID) -> None:
        """Flush, mapping a lost race on the pair to DuplicateTranslationError."""
        try:
            await self.db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateTranslationError(element_id, language_id) from e
            raise

    async def _flush_bulk(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.warning("bulk_upsert_conflict", error=str(e.orig))
                raise TransactionConflictError("bulk_upsert_translations") from e
            raise
