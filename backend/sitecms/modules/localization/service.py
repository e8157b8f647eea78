"""Localization module service layer."""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sitecms.core.database import is_unique_violation, transactional
from sitecms.core.exceptions import LanguageAlreadyExistsError, NotFoundError, ValidationError
from sitecms.core.logging import get_logger
from sitecms.core.redis import CacheClient
from sitecms.core.validation import parse_id, parse_payload
from sitecms.modules.content.cache import TranslationCache
from sitecms.modules.content.models import ContentTranslation
from sitecms.modules.content.schemas import OperationResult
from sitecms.modules.localization.models import Language
from sitecms.modules.localization.schemas import (
    LanguageCreate,
    LanguageResponse,
    LanguageStatusBatchResult,
    LanguageStatusUpdate,
    LanguageUpdate,
)

logger = get_logger(__name__)

# Fields embedded into cached translation responses
_CACHED_FIELDS = frozenset({"name", "code", "is_active"})


class LanguageService:
    """Service for managing website languages."""

    def __init__(self, db: AsyncSession, cache: CacheClient | None = None) -> None:
        self.db = db
        self.cache = TranslationCache(cache)

    # ========== Lookups ==========

    async def _get_model(self, language_id: UUID) -> Language:
        stmt = select(Language).where(Language.id == language_id)
        result = await self.db.execute(stmt)
        language = result.scalar_one_or_none()

        if not language:
            raise NotFoundError("Language", language_id)

        return language

    async def get_by_id(self, language_id: str | UUID) -> LanguageResponse:
        """Get language by ID."""
        language = await self._get_model(parse_id(language_id, "language"))
        return LanguageResponse.model_validate(language)

    async def list_languages(self, website_id: str | UUID | None = None) -> list[LanguageResponse]:
        """List languages ordered by display name, optionally for one website."""
        stmt = select(Language).order_by(Language.name)
        if website_id is not None:
            stmt = stmt.where(Language.website_id == parse_id(website_id, "website", "website_id"))

        result = await self.db.execute(stmt)
        return [LanguageResponse.model_validate(lang) for lang in result.scalars().all()]

    async def get_by_ids(self, language_ids: Iterable[UUID]) -> dict[UUID, Language]:
        """Load several languages in one query, keyed by id."""
        ids = set(language_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Language).where(Language.id.in_(ids)))
        return {lang.id: lang for lang in result.scalars().all()}

    async def exists(self, language_id: UUID) -> bool:
        stmt = select(Language.id).where(Language.id == language_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def find_existing_ids(self, language_ids: Iterable[UUID]) -> set[UUID]:
        """Subset of the given ids that refer to stored languages."""
        ids = set(language_ids)
        if not ids:
            return set()
        result = await self.db.execute(select(Language.id).where(Language.id.in_(ids)))
        return set(result.scalars().all())

    # ========== Mutations ==========

    async def create(self, data: LanguageCreate | Mapping[str, Any]) -> LanguageResponse:
        """Create a language for a website."""
        data = parse_payload(LanguageCreate, data, "Invalid language data")
        language = await self._create(data)

        logger.info(
            "language_created",
            language_id=str(language.id),
            website_id=str(language.website_id),
            code=language.code,
        )
        return LanguageResponse.model_validate(language)

    @transactional
    async def _create(self, data: LanguageCreate) -> Language:
        await self._check_unique(data.website_id, code=data.code, name=data.name)

        language = Language(
            id=uuid4(),
            name=data.name,
            code=data.code,
            is_active=data.is_active,
            website_id=data.website_id,
            sub_section_ids=[str(i) for i in data.sub_section_ids],
        )
        self.db.add(language)
        await self._flush(language)
        await self.db.refresh(language)

        return language

    async def update(
        self, language_id: str | UUID, data: LanguageUpdate | Mapping[str, Any]
    ) -> LanguageResponse:
        """Update a language.

        Changing the display name, code or status drops cached translations
        of the language, since those fields are embedded in them.
        """
        language_id = parse_id(language_id, "language")
        data = parse_payload(LanguageUpdate, data, "Invalid language data")
        language = await self._update(language_id, data)

        if _CACHED_FIELDS & data.model_fields_set:
            await self._invalidate_languages([language_id])

        logger.info("language_updated", language_id=str(language_id))
        return LanguageResponse.model_validate(language)

    @transactional
    async def _update(self, language_id: UUID, data: LanguageUpdate) -> Language:
        language = await self._get_model(language_id)
        update_data = data.model_dump(exclude_unset=True)

        # Moving to another website re-checks the unchanged code and name there
        website_id = update_data.get("website_id") or language.website_id
        website_changed = website_id != language.website_id
        await self._check_unique(
            website_id,
            code=update_data.get("code") or (language.code if website_changed else None),
            name=update_data.get("name") or (language.name if website_changed else None),
            exclude_id=language.id,
        )

        if "sub_section_ids" in update_data:
            update_data["sub_section_ids"] = [str(i) for i in update_data["sub_section_ids"] or []]

        for field, value in update_data.items():
            if value is None and field in {"name", "code", "website_id", "is_active"}:
                continue
            setattr(language, field, value)

        await self._flush(language)
        await self.db.refresh(language)

        return language

    async def delete(self, language_id: str | UUID) -> OperationResult:
        """Delete a language together with its translations."""
        language_id = parse_id(language_id, "language")
        element_ids, translation_ids = await self._delete(language_id)

        await self.cache.invalidate(
            content_element_ids=element_ids,
            language_ids=[language_id],
            translation_ids=translation_ids,
        )

        logger.info(
            "language_deleted",
            language_id=str(language_id),
            translations_deleted=len(translation_ids),
        )
        return OperationResult(success=True, message="Language deleted successfully")

    @transactional
    async def _delete(self, language_id: UUID) -> tuple[set[UUID], list[UUID]]:
        language = await self._get_model(language_id)

        stmt = select(ContentTranslation.id, ContentTranslation.content_element_id).where(
            ContentTranslation.language_id == language_id
        )
        rows = (await self.db.execute(stmt)).all()

        await self.db.execute(
            delete(ContentTranslation).where(ContentTranslation.language_id == language_id)
        )
        await self.db.delete(language)
        await self.db.flush()

        return {row.content_element_id for row in rows}, [row.id for row in rows]

    async def set_active(self, language_id: str | UUID, is_active: bool) -> LanguageResponse:
        """Set the active flag of a language."""
        return await self.update(language_id, LanguageUpdate(is_active=is_active))

    async def toggle_status(self, language_id: str | UUID) -> LanguageResponse:
        """Flip the active flag of a language."""
        language_id = parse_id(language_id, "language")
        language = await self._toggle(language_id)
        await self._invalidate_languages([language_id])

        logger.info(
            "language_status_toggled",
            language_id=str(language_id),
            is_active=language.is_active,
        )
        return LanguageResponse.model_validate(language)

    @transactional
    async def _toggle(self, language_id: UUID) -> Language:
        language = await self._get_model(language_id)
        language.is_active = not language.is_active
        await self.db.flush()
        await self.db.refresh(language)
        return language

    async def batch_update_statuses(
        self, updates: Iterable[LanguageStatusUpdate | Mapping[str, Any]]
    ) -> LanguageStatusBatchResult:
        """Apply several status changes in one transaction.

        Unknown ids are skipped; `updated_count` only counts languages whose
        status actually changed.
        """
        items = [
            parse_payload(LanguageStatusUpdate, update, "Invalid language status update")
            for update in updates
        ]
        if not items:
            raise ValidationError("No updates provided")

        changed = await self._batch_update(items)
        if changed:
            await self._invalidate_languages(changed)

        logger.info("language_statuses_updated", requested=len(items), updated=len(changed))
        return LanguageStatusBatchResult(
            success=True,
            message=f"Updated status for {len(changed)} languages",
            updated_count=len(changed),
        )

    @transactional
    async def _batch_update(self, items: list[LanguageStatusUpdate]) -> list[UUID]:
        languages = await self.get_by_ids(item.id for item in items)

        changed: list[UUID] = []
        for item in items:
            language = languages.get(item.id)
            if language is None or language.is_active == item.is_active:
                continue
            language.is_active = item.is_active
            if item.id not in changed:
                changed.append(item.id)

        await self.db.flush()
        return changed

    # ========== Helpers ==========

    async def _check_unique(
        self,
        website_id: UUID,
        code: str | None = None,
        name: str | None = None,
        exclude_id: UUID | None = None,
    ) -> None:
        """Reject a code or display name already used on the website."""
        for field, value in (("code", code), ("name", name)):
            if value is None:
                continue
            column = getattr(Language, field)
            stmt = select(Language.id).where(
                Language.website_id == website_id,
                column == value,
            )
            if exclude_id is not None:
                stmt = stmt.where(Language.id != exclude_id)
            result = await self.db.execute(stmt)
            if result.first() is not None:
                raise LanguageAlreadyExistsError(website_id, field, value)

    async def _flush(self, language: Language) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            field = "name" if "name" in str(e.orig).lower() else "code"
            raise LanguageAlreadyExistsError(
                language.website_id, field, getattr(language, field)
            ) from e

    async def _invalidate_languages(self, language_ids: list[UUID]) -> None:
        """Drop cached translations of the languages and the lists holding them."""
        if self.cache.client is None or not language_ids:
            return
        stmt = select(ContentTranslation.id, ContentTranslation.content_element_id).where(
            ContentTranslation.language_id.in_(language_ids)
        )
        rows = (await self.db.execute(stmt)).all()
        await self.cache.invalidate(
            content_element_ids={row.content_element_id for row in rows},
            language_ids=language_ids,
            translation_ids=[row.id for row in rows],
        )
