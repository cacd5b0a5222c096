"""
Audit Log Repository.
"""

from sqlalchemy import select

from crm.backend.models.audit_log import AuditLog
from crm.backend.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog model."""

    model = AuditLog

    async def list_for_resource(self, resource_type: str, resource_id: str) -> list[AuditLog]:
        """Audit trail of one resource, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())
