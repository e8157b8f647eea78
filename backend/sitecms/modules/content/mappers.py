"""Mappers for transforming ORM models to DTOs in content module.

References are attached from id-keyed maps that the services fill with one
batched query per referenced table.
"""

from collections.abc import Mapping
from uuid import UUID

from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.schemas import (
    ContentElementBrief,
    ContentElementResponse,
    LanguageBrief,
    TranslationResponse,
)
from sitecms.modules.localization.models import Language


def map_language_to_brief(language: Language) -> LanguageBrief:
    return LanguageBrief(
        id=language.id,
        name=language.name,
        code=language.code,
        is_active=language.is_active,
    )


def map_element_to_brief(element: ContentElement) -> ContentElementBrief:
    return ContentElementBrief(
        id=element.id,
        name=element.name,
        type=element.type,
        sort_order=element.sort_order,
        is_active=element.is_active,
        parent_id=element.parent_id,
    )


def map_translation_to_response(
    translation: ContentTranslation,
    languages: Mapping[UUID, Language] | None = None,
    elements: Mapping[UUID, ContentElement] | None = None,
) -> TranslationResponse:
    """Map a ContentTranslation to TranslationResponse.

    Args:
        translation: Translation ORM model
        languages: Loaded languages by id; the reference is expanded when present
        elements: Loaded content elements by id; the reference is expanded when present
    """
    language = (languages or {}).get(translation.language_id)
    element = (elements or {}).get(translation.content_element_id)

    return TranslationResponse(
        id=translation.id,
        content=translation.content,
        language_id=translation.language_id,
        content_element_id=translation.content_element_id,
        is_active=translation.is_active,
        metadata=translation.extra_data,
        created_at=translation.created_at,
        updated_at=translation.updated_at,
        language=map_language_to_brief(language) if language else None,
        content_element=map_element_to_brief(element) if element else None,
    )


def map_element_to_response(
    element: ContentElement,
    translations: list[TranslationResponse] | None = None,
) -> ContentElementResponse:
    """Map a ContentElement to ContentElementResponse."""
    return ContentElementResponse(
        id=element.id,
        name=element.name,
        type=element.type,
        default_content=element.default_content,
        image_url=element.image_url,
        file_url=element.file_url,
        file_name=element.file_name,
        file_size=element.file_size,
        file_mime_type=element.file_mime_type,
        is_active=element.is_active,
        metadata=element.extra_data,
        sort_order=element.sort_order,
        parent_id=element.parent_id,
        created_at=element.created_at,
        updated_at=element.updated_at,
        translations=translations,
    )
