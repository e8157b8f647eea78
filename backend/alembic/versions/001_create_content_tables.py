"""Create languages, content elements and content translations.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ELEMENT_TYPES = (
    "text", "heading", "array", "paragraph", "file", "list", "image",
    "video", "link", "custom", "badge", "textarea", "boolean",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create content tables."""
    op.create_table(
        "languages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("website_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sub_section_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
    )
    op.create_index("ix_languages_id", "languages", ["id"])
    op.create_index("ix_languages_name", "languages", ["name"])
    op.create_index("ix_languages_code", "languages", ["code"])
    op.create_index("ix_languages_website_id", "languages", ["website_id"])
    op.create_index("ix_languages_website_code", "languages", ["website_id", "code"], unique=True)
    op.create_index("ix_languages_website_name", "languages", ["website_id", "name"], unique=True)

    op.create_table(
        "content_elements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("default_content", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("file_url", sa.String(500), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_mime_type", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN (" + ", ".join(f"'{t}'" for t in ELEMENT_TYPES) + ")",
            name="ck_content_elements_type",
        ),
    )
    op.create_index("ix_content_elements_id", "content_elements", ["id"])
    op.create_index("ix_content_elements_name", "content_elements", ["name"])
    op.create_index("ix_content_elements_type", "content_elements", ["type"])
    op.create_index("ix_content_elements_parent_id", "content_elements", ["parent_id"])
    op.create_index("ix_content_elements_sort_order", "content_elements", ["sort_order"])
    op.create_index("ix_content_elements_parent_order", "content_elements", ["parent_id", "sort_order"])

    op.create_table(
        "content_translations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "language_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("languages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "content_element_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("content_elements.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "content_element_id", "language_id", name="uq_content_translations_element_language"
        ),
        sa.CheckConstraint("length(content) > 0", name="ck_content_translations_content"),
    )
    op.create_index("ix_content_translations_id", "content_translations", ["id"])
    op.create_index("ix_content_translations_language_id", "content_translations", ["language_id"])
    op.create_index(
        "ix_content_translations_content_element_id", "content_translations", ["content_element_id"]
    )


def downgrade() -> None:
    """Drop content tables."""
    op.drop_table("content_translations")
    op.drop_table("content_elements")
    op.drop_table("languages")
