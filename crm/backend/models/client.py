"""
Client Model.

A CRM client (company or individual). Archival is recorded as a
nullable timestamp; ``archived_at IS NOT NULL`` means archived.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.models.base import Base, OrganizationMixin, TimestampMixin, UUIDMixin
from crm.backend.models.enums import ClientStatus, ClientType, VatStatus


class Client(UUIDMixin, TimestampMixin, OrganizationMixin, Base):
    """CRM client owned by a user inside an organization."""

    __tablename__ = "clients"

    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    client_type: Mapped[str] = mapped_column(
        String(20),
        default=ClientType.COMPANY.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=ClientStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vat_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    vat_status: Mapped[str] = mapped_column(
        String(20),
        default=VatStatus.NOT_VALIDATED.value,
        nullable=False,
    )
    risk_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    risk_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, display_name={self.display_name!r})>"
