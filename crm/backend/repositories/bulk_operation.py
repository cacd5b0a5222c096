"""
Bulk Operation Repository.
"""

from datetime import datetime

from sqlalchemy import select, update

from crm.backend.models.bulk_operation import BulkOperation
from crm.backend.repositories.base import BaseRepository


class BulkOperationRepository(BaseRepository[BulkOperation]):
    """Repository for BulkOperation tracking rows."""

    model = BulkOperation

    async def get_in_organization(
        self,
        operation_id: str,
        organization_id: str,
    ) -> BulkOperation | None:
        result = await self.session.execute(
            select(BulkOperation).where(
                BulkOperation.id == str(operation_id),
                BulkOperation.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_organization(
        self,
        organization_id: str,
        operation_type: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[BulkOperation], int]:
        """
        Operations of an organization, newest first.

        Returns:
            Tuple of (operations, total matching)
        """
        criteria = [BulkOperation.organization_id == organization_id]
        if operation_type:
            criteria.append(BulkOperation.operation_type == operation_type)
        if status:
            criteria.append(BulkOperation.status == status)

        result = await self.session.execute(
            select(BulkOperation)
            .where(*criteria)
            .order_by(BulkOperation.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self.count(*criteria)
        return list(result.scalars().all()), total

    async def clear_expired_output(self, now: datetime) -> int:
        """Drop rendered export content past its expiry. Returns rows cleared."""
        result = await self.session.execute(
            update(BulkOperation)
            .where(
                BulkOperation.expires_at < now,
                BulkOperation.output.is_not(None),
            )
            .values(output=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount
