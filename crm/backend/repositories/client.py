"""
Client Repository.

Data access for clients, always scoped to what the calling session may
see: clients it owns or clients of its organization.
"""

from collections.abc import Iterable

from sqlalchemy import ColumnElement, or_, select

from crm.backend.core.security import SessionContext
from crm.backend.models.client import Client
from crm.backend.repositories.base import BaseRepository


def accessible_to(actor: SessionContext) -> ColumnElement[bool]:
    """Where-clause selecting clients the actor may act on."""
    return or_(
        Client.owner_id == actor.user_id,
        Client.organization_id == actor.organization_id,
    )


class ClientRepository(BaseRepository[Client]):
    """Repository for Client model."""

    model = Client

    async def get_accessible(self, client_id: str, actor: SessionContext) -> Client | None:
        """Get a client if the actor may access it, else None."""
        result = await self.session.execute(
            select(Client).where(Client.id == str(client_id), accessible_to(actor))
        )
        return result.scalar_one_or_none()

    async def get_many_accessible(
        self,
        client_ids: Iterable[str],
        actor: SessionContext,
    ) -> dict[str, Client]:
        """Load accessible clients by ID. Inaccessible and missing IDs are absent."""
        id_list = [str(i) for i in client_ids]
        if not id_list:
            return {}
        result = await self.session.execute(
            select(Client).where(Client.id.in_(id_list), accessible_to(actor))
        )
        return {client.id: client for client in result.scalars().all()}

    async def list_for_organization(
        self,
        organization_id: str,
        client_ids: Iterable[str] | None = None,
    ) -> list[Client]:
        """All clients of an organization, optionally restricted to given IDs."""
        stmt = select(Client).where(Client.organization_id == organization_id)
        if client_ids is not None:
            stmt = stmt.where(Client.id.in_([str(i) for i in client_ids]))
        result = await self.session.execute(stmt.order_by(Client.display_name))
        return list(result.scalars().all())
