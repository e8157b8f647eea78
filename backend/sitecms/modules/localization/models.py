"""Localization database models."""

from uuid import UUID

from sqlalchemy import Boolean, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from sitecms.core.base_model import Base, JSONType, TimestampMixin, UUIDMixin


class Language(Base, UUIDMixin, TimestampMixin):
    """Language enabled on a website.

    Both the short code and the display name are unique per website.
    """

    __tablename__ = "languages"

    # Display name (e.g., 'English', 'Deutsch')
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Short code (e.g., 'en', 'de-AT')
    code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Owning website (managed outside this service)
    website_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Sub-sections this language is attached to
    sub_section_ids: Mapped[list[str]] = mapped_column(
        JSONType, default=list, nullable=False
    )

    __table_args__ = (
        Index("ix_languages_website_code", "website_id", "code", unique=True),
        Index("ix_languages_website_name", "website_id", "name", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Language {self.code} website={self.website_id}>"
