"""Pydantic schemas for localization module."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LanguageBase(BaseModel):
    """Base schema for language."""

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    code: str = Field(..., min_length=2, max_length=20, description="Short code, e.g. 'en'")
    is_active: bool = False
    sub_section_ids: list[UUID] = []


class LanguageCreate(LanguageBase):
    """Schema for creating a language."""

    website_id: UUID


class LanguageUpdate(BaseModel):
    """Schema for updating a language."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    code: str | None = Field(default=None, min_length=2, max_length=20)
    is_active: bool | None = None
    website_id: UUID | None = None
    sub_section_ids: list[UUID] | None = None


class LanguageResponse(LanguageBase):
    """Schema for language response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    website_id: UUID
    created_at: datetime
    updated_at: datetime


class LanguageStatusUpdate(BaseModel):
    """One entry of a batch status update."""

    id: UUID
    is_active: bool


class LanguageStatusBatchResult(BaseModel):
    """Result of a batch status update."""

    success: bool
    message: str
    updated_count: int
