"""Content module database models."""

from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from sitecms.core.base_model import (
    Base,
    JSONType,
    SortOrderMixin,
    TimestampMixin,
    UUIDMixin,
)


class ContentElementType(str, Enum):
    """Kind of content slot."""

    TEXT = "text"
    HEADING = "heading"
    ARRAY = "array"
    PARAGRAPH = "paragraph"
    FILE = "file"
    LIST = "list"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    CUSTOM = "custom"
    BADGE = "badge"
    TEXTAREA = "textarea"
    BOOLEAN = "boolean"


# Types allowed to carry each group of media fields
IMAGE_TYPES = frozenset({ContentElementType.IMAGE})
FILE_TYPES = frozenset({ContentElementType.FILE, ContentElementType.VIDEO})

_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in ContentElementType)


# ============================================================================
# Content Elements
# ============================================================================


class ContentElement(Base, UUIDMixin, TimestampMixin, SortOrderMixin):
    """Language-independent content slot owned by a sub-section."""

    __tablename__ = "content_elements"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    default_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Media
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    # Owning sub-section (managed outside this service)
    parent_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    __table_args__ = (
        Index("ix_content_elements_parent_order", "parent_id", "sort_order"),
        CheckConstraint(f"type IN ({_TYPE_VALUES})", name="ck_content_elements_type"),
    )

    def __repr__(self) -> str:
        return f"<ContentElement {self.id} type={self.type}>"


# ============================================================================
# Translations
# ============================================================================


class ContentTranslation(Base, UUIDMixin, TimestampMixin):
    """Localized value of one content element in one language."""

    __tablename__ = "content_translations"

    content: Mapped[str] = mapped_column(Text, nullable=False)

    language_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("languages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_element_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("content_elements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "content_element_id", "language_id", name="uq_content_translations_element_language"
        ),
        CheckConstraint("length(content) > 0", name="ck_content_translations_content"),
    )

    def __repr__(self) -> str:
        return f"<ContentTranslation {self.id} element={self.content_element_id}>"
