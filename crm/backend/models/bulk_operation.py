"""
Bulk Operation Model.

Persisted record of an asynchronous bulk job. Callers poll it for
progress and may cancel it while it is pending or processing.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.models.base import Base, OrganizationMixin, TimestampMixin, UUIDMixin
from crm.backend.models.enums import BulkOperationStatus


class BulkOperation(UUIDMixin, TimestampMixin, OrganizationMixin, Base):
    """Tracking row for one bulk job."""

    __tablename__ = "bulk_operations"

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    operation_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=BulkOperationStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    parameters: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    # Rendered export file, served by the download endpoint
    output: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def progress(self) -> int:
        """Completion percentage, 0-100."""
        if not self.total_items:
            return 0
        return int(self.processed_items * 100 / self.total_items)

    def __repr__(self) -> str:
        return f"<BulkOperation(id={self.id}, type={self.operation_type!r}, status={self.status!r})>"
