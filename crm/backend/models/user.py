"""
User Model.

Users own clients and act on them. Only the fields the CRM services
read are modelled here.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.models.base import Base, OrganizationMixin, TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, OrganizationMixin, Base):
    """Application user belonging to one organization."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
