"""Content element service layer."""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitecms.core.database import transactional
from sitecms.core.exceptions import NotFoundError, ValidationError
from sitecms.core.logging import get_logger
from sitecms.core.redis import CacheClient
from sitecms.core.validation import parse_id, parse_payload
from sitecms.modules.content.cache import TranslationCache
from sitecms.modules.content.mappers import map_element_to_response, map_translation_to_response
from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.schemas import (
    ContentElementCreate,
    ContentElementResponse,
    ContentElementUpdate,
    ElementOrderItem,
    OperationResult,
    TranslationResponse,
    check_media_fields,
)
from sitecms.modules.localization.models import Language

logger = get_logger(__name__)

_MEDIA_FIELDS = ("image_url", "file_url", "file_name", "file_size", "file_mime_type")

# Fields embedded into cached translation responses
_CACHED_FIELDS = frozenset({"name", "type", "sort_order", "is_active", "parent_id"})


class ContentElementService:
    """Service for managing content elements."""

    def __init__(self, db: AsyncSession, cache: CacheClient | None = None) -> None:
        self.db = db
        self.cache = TranslationCache(cache)

    # ========== Lookups ==========

    async def _get_model(self, element_id: UUID) -> ContentElement:
        stmt = select(ContentElement).where(ContentElement.id == element_id)
        result = await self.db.execute(stmt)
        element = result.scalar_one_or_none()

        if not element:
            raise NotFoundError("Content element", element_id)

        return element

    async def get_by_id(
        self, element_id: str | UUID, include_translations: bool = False
    ) -> ContentElementResponse:
        """Get content element by ID, optionally with all its translations."""
        element = await self._get_model(parse_id(element_id, "content element"))

        translations = None
        if include_translations:
            grouped = await self._translations_for([element.id])
            translations = grouped.get(element.id, [])

        return map_element_to_response(element, translations)

    async def list_by_parent(
        self,
        parent_id: str | UUID,
        active_only: bool = True,
        include_translations: bool = False,
    ) -> list[ContentElementResponse]:
        """List the content elements of a sub-section in display order."""
        parent_id = parse_id(parent_id, "sub-section", "parent_id")

        stmt = (
            select(ContentElement)
            .where(ContentElement.parent_id == parent_id)
            .order_by(ContentElement.sort_order, ContentElement.created_at)
        )
        if active_only:
            stmt = stmt.where(ContentElement.is_active.is_(True))

        result = await self.db.execute(stmt)
        elements = list(result.scalars().all())

        if not include_translations:
            return [map_element_to_response(element) for element in elements]

        grouped = await self._translations_for([e.id for e in elements])
        return [map_element_to_response(e, grouped.get(e.id, [])) for e in elements]

    async def get_by_ids(self, element_ids: Iterable[UUID]) -> dict[UUID, ContentElement]:
        """Load several content elements in one query, keyed by id."""
        ids = set(element_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(ContentElement).where(ContentElement.id.in_(ids)))
        return {element.id: element for element in result.scalars().all()}

    async def exists(self, element_id: UUID) -> bool:
        stmt = select(ContentElement.id).where(ContentElement.id == element_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def find_existing_ids(self, element_ids: Iterable[UUID]) -> set[UUID]:
        """Subset of the given ids that refer to stored content elements."""
        ids = set(element_ids)
        if not ids:
            return set()
        result = await self.db.execute(
            select(ContentElement.id).where(ContentElement.id.in_(ids))
        )
        return set(result.scalars().all())

    async def _translations_for(
        self, element_ids: list[UUID]
    ) -> dict[UUID, list[TranslationResponse]]:
        """All translations of the elements with their language, by element."""
        if not element_ids:
            return {}

        stmt = (
            select(ContentTranslation, Language)
            .join(Language, Language.id == ContentTranslation.language_id)
            .where(ContentTranslation.content_element_id.in_(element_ids))
            .order_by(Language.name)
        )
        rows = (await self.db.execute(stmt)).all()

        grouped: dict[UUID, list[TranslationResponse]] = defaultdict(list)
        for translation, language in rows:
            grouped[translation.content_element_id].append(
                map_translation_to_response(translation, languages={language.id: language})
            )
        return grouped

    # ========== Mutations ==========

    async def create(
        self, data: ContentElementCreate | Mapping[str, Any]
    ) -> ContentElementResponse:
        """Create a content element."""
        data = parse_payload(ContentElementCreate, data, "Invalid content element data")
        element = await self._create(data)

        logger.info(
            "content_element_created",
            element_id=str(element.id),
            parent_id=str(element.parent_id),
            type=element.type,
        )
        return map_element_to_response(element)

    @transactional
    async def _create(self, data: ContentElementCreate) -> ContentElement:
        element = ContentElement(
            id=uuid4(),
            name=data.name,
            type=data.type.value,
            default_content=data.default_content,
            image_url=data.image_url,
            file_url=data.file_url,
            file_name=data.file_name,
            file_size=data.file_size,
            file_mime_type=data.file_mime_type,
            is_active=data.is_active,
            extra_data=data.metadata,
            sort_order=data.sort_order,
            parent_id=data.parent_id,
        )
        self.db.add(element)
        await self.db.flush()
        await self.db.refresh(element)

        return element

    async def update(
        self, element_id: str | UUID, data: ContentElementUpdate | Mapping[str, Any]
    ) -> ContentElementResponse:
        """Update a content element."""
        element_id = parse_id(element_id, "content element")
        data = parse_payload(ContentElementUpdate, data, "Invalid content element data")
        element = await self._update(element_id, data)

        if _CACHED_FIELDS & data.model_fields_set:
            await self._invalidate_elements([element_id])

        logger.info("content_element_updated", element_id=str(element_id))
        return map_element_to_response(element)

    @transactional
    async def _update(self, element_id: UUID, data: ContentElementUpdate) -> ContentElement:
        element = await self._get_model(element_id)
        update_data = data.model_dump(exclude_unset=True)

        # Media fields are checked against the resulting type and values
        element_type = update_data.get("type") or element.type
        media = {field: getattr(element, field) for field in _MEDIA_FIELDS}
        media.update({k: v for k, v in update_data.items() if k in _MEDIA_FIELDS})
        try:
            check_media_fields(element_type, media)
        except ValueError as e:
            raise ValidationError(str(e), errors=[{"field": "type", "message": str(e)}]) from e

        if "metadata" in update_data:
            element.extra_data = update_data.pop("metadata")
        if "type" in update_data and update_data["type"] is not None:
            update_data["type"] = update_data["type"].value

        for field, value in update_data.items():
            if value is None and field in {"name", "type", "is_active", "sort_order", "parent_id"}:
                continue
            setattr(element, field, value)

        await self.db.flush()
        await self.db.refresh(element)

        return element

    async def delete(self, element_id: str | UUID, hard_delete: bool = False) -> OperationResult:
        """Delete a content element and its translations.

        A soft delete deactivates the element and every translation of it;
        a hard delete removes the translations first, then the element.
        """
        element_id = parse_id(element_id, "content element")
        language_ids, translation_ids = await self._delete(element_id, hard_delete)

        await self.cache.invalidate(
            content_element_ids=[element_id],
            language_ids=language_ids,
            translation_ids=translation_ids,
        )

        logger.info(
            "content_element_deleted",
            element_id=str(element_id),
            hard_delete=hard_delete,
            translations=len(translation_ids),
        )
        if hard_delete:
            message = "Content element and its translations deleted successfully"
        else:
            message = "Content element and its translations deactivated successfully"
        return OperationResult(success=True, message=message)

    @transactional
    async def _delete(
        self, element_id: UUID, hard_delete: bool
    ) -> tuple[set[UUID], list[UUID]]:
        element = await self._get_model(element_id)

        stmt = select(ContentTranslation.id, ContentTranslation.language_id).where(
            ContentTranslation.content_element_id == element_id
        )
        rows = (await self.db.execute(stmt)).all()

        if hard_delete:
            await self.db.execute(
                delete(ContentTranslation).where(
                    ContentTranslation.content_element_id == element_id
                )
            )
            await self.db.delete(element)
        else:
            element.is_active = False
            await self.db.execute(
                update(ContentTranslation)
                .where(ContentTranslation.content_element_id == element_id)
                .values(is_active=False)
                .execution_options(synchronize_session="fetch")
            )
        await self.db.flush()

        return {row.language_id for row in rows}, [row.id for row in rows]

    async def update_order(
        self, items: Iterable[ElementOrderItem | Mapping[str, Any]]
    ) -> OperationResult:
        """Assign new sort positions to several elements in one transaction."""
        orders = [parse_payload(ElementOrderItem, item, "Invalid order item") for item in items]
        updated = await self._update_order(orders)

        if updated:
            await self._invalidate_elements(updated)

        logger.info("content_elements_reordered", requested=len(orders), updated=len(updated))
        return OperationResult(
            success=True,
            message=f"Updated order for {len(updated)} content elements",
        )

    @transactional
    async def _update_order(self, orders: list[ElementOrderItem]) -> list[UUID]:
        elements = await self.get_by_ids(item.id for item in orders)

        updated: list[UUID] = []
        for item in orders:
            element = elements.get(item.id)
            if element is None:
                continue
            element.sort_order = item.order
            if item.id not in updated:
                updated.append(item.id)

        await self.db.flush()
        return updated

    # ========== Helpers ==========

    async def _invalidate_elements(self, element_ids: list[UUID]) -> None:
        """Drop cached translations of the elements and the lists holding them."""
        if self.cache.client is None or not element_ids:
            return
        stmt = select(ContentTranslation.id, ContentTranslation.language_id).where(
            ContentTranslation.content_element_id.in_(element_ids)
        )
        rows = (await self.db.execute(stmt)).all()
        await self.cache.invalidate(
            content_element_ids=element_ids,
            language_ids={row.language_id for row in rows},
            translation_ids=[row.id for row in rows],
        )
