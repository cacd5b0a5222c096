"""
Tag Models.

Tags are grouped into categories. A category's selection mode decides
whether a client may carry one (SINGLE) or many (MULTIPLE) of its tags.
ClientTag is the assignment of a tag to a client.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.core.utils import utc_now
from crm.backend.models.base import Base, OrganizationMixin, TimestampMixin, UUIDMixin
from crm.backend.models.enums import SelectionMode

DEFAULT_TAG_COLOR = "#3B82F6"


class TagCategory(UUIDMixin, TimestampMixin, OrganizationMixin, Base):
    """Named group of tags with a selection mode."""

    __tablename__ = "tag_categories"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_tag_categories_org_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    selection_mode: Mapped[str] = mapped_column(
        String(10),
        default=SelectionMode.MULTIPLE.value,
        nullable=False,
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<TagCategory(id={self.id}, name={self.name!r})>"


class Tag(UUIDMixin, TimestampMixin, OrganizationMixin, Base):
    """Label that can be assigned to clients."""

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_tags_org_name"),
    )

    category_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("tag_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    color: Mapped[str] = mapped_column(String(7), default=DEFAULT_TAG_COLOR, nullable=False)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name!r})>"


class ClientTag(UUIDMixin, Base):
    """Assignment of a tag to a client."""

    __tablename__ = "client_tags"
    __table_args__ = (
        UniqueConstraint("client_id", "tag_id", name="uq_client_tags_client_tag"),
    )

    client_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
