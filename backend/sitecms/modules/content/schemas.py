"""Pydantic schemas for content module."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints, model_validator

from sitecms.modules.content.models import FILE_TYPES, IMAGE_TYPES, ContentElementType

_FILE_FIELDS = ("file_url", "file_name", "file_size", "file_mime_type")


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ============================================================================
# Content Element Schemas
# ============================================================================


class ContentElementBase(BaseModel):
    """Base schema for content element."""

    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    type: ContentElementType
    default_content: str | None = None
    image_url: str | None = Field(default=None, max_length=500)
    file_url: str | None = Field(default=None, max_length=500)
    file_name: str | None = Field(default=None, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    file_mime_type: str | None = Field(default=None, max_length=100)
    is_active: bool = True
    metadata: dict[str, Any] | None = None
    sort_order: int = 0


def check_media_fields(
    element_type: ContentElementType | str, values: dict[str, Any]
) -> None:
    """Reject media fields that do not belong to the element type."""
    element_type = ContentElementType(element_type)
    if values.get("image_url") and element_type not in IMAGE_TYPES:
        raise ValueError("image_url is only allowed for image elements")
    if any(values.get(f) is not None for f in _FILE_FIELDS) and element_type not in FILE_TYPES:
        raise ValueError("file fields are only allowed for file and video elements")


class ContentElementCreate(ContentElementBase):
    """Schema for creating a content element."""

    parent_id: UUID

    @model_validator(mode="after")
    def validate_media(self) -> "ContentElementCreate":
        check_media_fields(self.type, self.model_dump())
        return self


class ContentElementUpdate(BaseModel):
    """Schema for updating a content element.

    Media fields are checked against the stored type in the service,
    because the type itself may be absent from the patch.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    type: ContentElementType | None = None
    default_content: str | None = None
    image_url: str | None = Field(default=None, max_length=500)
    file_url: str | None = Field(default=None, max_length=500)
    file_name: str | None = Field(default=None, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    file_mime_type: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None
    metadata: dict[str, Any] | None = None
    sort_order: int | None = None
    parent_id: UUID | None = None


class ContentElementBrief(BaseModel):
    """Content element as embedded in a translation."""

    id: UUID
    name: str
    type: str
    sort_order: int
    is_active: bool
    parent_id: UUID


class ContentElementResponse(ContentElementBase):
    """Schema for content element response."""

    id: UUID
    parent_id: UUID
    created_at: datetime
    updated_at: datetime
    translations: list[TranslationResponse] | None = None


class ElementOrderItem(BaseModel):
    """New position of one content element."""

    id: UUID
    order: int


# ============================================================================
# Translation Schemas
# ============================================================================


class LanguageBrief(BaseModel):
    """Language as embedded in a translation."""

    id: UUID
    name: str
    code: str
    is_active: bool


class TranslationCreate(BaseModel):
    """Schema for creating a translation."""

    content: NonEmptyStr
    language: UUID
    content_element: UUID
    is_active: bool = True
    metadata: dict[str, Any] | None = None


class TranslationUpdate(BaseModel):
    """Schema for updating a translation."""

    content: NonEmptyStr | None = None
    language: UUID | None = None
    content_element: UUID | None = None
    is_active: bool | None = None
    metadata: dict[str, Any] | None = None


class TranslationResponse(BaseModel):
    """Schema for translation response with expanded references."""

    id: UUID
    content: str
    language_id: UUID
    content_element_id: UUID
    is_active: bool
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    language: LanguageBrief | None = None
    content_element: ContentElementBrief | None = None


# ============================================================================
# Bulk Upsert Schemas
# ============================================================================


class TranslationBulkItem(TranslationCreate):
    """One item of a bulk upsert; `id` targets a specific record."""

    id: UUID | None = None
    is_active: bool | None = None


class BulkItemError(BaseModel):
    """Failure of a single bulk item."""

    index: int = Field(..., description="1-based position in the submitted list")
    reason: str


class BulkUpsertResult(BaseModel):
    """Summary of a bulk upsert."""

    success: bool
    message: str
    created: int
    updated: int
    errors: list[BulkItemError] = []


class OperationResult(BaseModel):
    """Outcome of a delete or reorder operation."""

    success: bool
    message: str


ContentElementResponse.model_rebuild()
