"""
Contact Repository.

Data access for client contacts, including the primary-contact
bookkeeping and cross-client search.
"""

from dataclasses import dataclass

from sqlalchemy import Select, or_, select

from crm.backend.core.pagination import PagedResult, PageParams, paginate_select
from crm.backend.core.security import SessionContext
from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.enums import ContactStatus
from crm.backend.repositories.base import BaseRepository
from crm.backend.repositories.client import accessible_to

_SORT_COLUMNS = {
    "created_at": (Contact.created_at,),
    "updated_at": (Contact.updated_at,),
    "contact_type": (Contact.contact_type,),
    "full_name": (Contact.first_name, Contact.last_name),
}


@dataclass
class ContactFilters:
    """Optional filters for listing a client's contacts."""

    contact_type: str | None = None
    status: str | None = None
    search: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def _matches(term: str):
    pattern = f"%{term}%"
    return or_(
        Contact.first_name.ilike(pattern),
        Contact.last_name.ilike(pattern),
        Contact.email.ilike(pattern),
        Contact.phone.ilike(pattern),
        Contact.mobile_phone.ilike(pattern),
    )


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact model."""

    model = Contact

    async def get_accessible(self, contact_id: str, actor: SessionContext) -> Contact | None:
        """Get a contact whose client the actor may access."""
        result = await self.session.execute(
            select(Contact)
            .join(Client, Client.id == Contact.client_id)
            .where(Contact.id == str(contact_id), accessible_to(actor))
        )
        return result.scalar_one_or_none()

    async def get_primary(
        self,
        client_id: str,
        contact_type: str,
        exclude_id: str | None = None,
    ) -> Contact | None:
        """Current primary contact of the given type for a client."""
        stmt = select(Contact).where(
            Contact.client_id == client_id,
            Contact.contact_type == contact_type,
            Contact.is_primary.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(Contact.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def clear_primary(
        self,
        client_id: str,
        contact_type: str,
        exclude_id: str | None = None,
    ) -> Contact | None:
        """
        Unset the primary flag on the current primary of a type.

        Returns:
            The contact that was primary before, or None
        """
        previous = await self.get_primary(client_id, contact_type, exclude_id)
        if previous is not None:
            previous.is_primary = False
            await self.session.flush()
        return previous

    def _list_statement(self, client_id: str, filters: ContactFilters) -> Select:
        stmt = select(Contact).where(Contact.client_id == client_id)

        if filters.status:
            stmt = stmt.where(Contact.status == filters.status)
        else:
            stmt = stmt.where(Contact.status != ContactStatus.ARCHIVED.value)
        if filters.contact_type:
            stmt = stmt.where(Contact.contact_type == filters.contact_type)
        if filters.search:
            stmt = stmt.where(_matches(filters.search))

        columns = _SORT_COLUMNS.get(filters.sort_by, _SORT_COLUMNS["created_at"])
        if filters.sort_order == "asc":
            return stmt.order_by(*[c.asc() for c in columns])
        return stmt.order_by(*[c.desc() for c in columns])

    async def list_for_client(
        self,
        client_id: str,
        filters: ContactFilters,
        params: PageParams,
    ) -> PagedResult[Contact]:
        """One page of a client's contacts."""
        return await paginate_select(
            self.session, self._list_statement(client_id, filters), params
        )

    async def list_all_for_clients(self, client_ids: list[str]) -> list[Contact]:
        """Non-archived contacts of several clients, for exports."""
        if not client_ids:
            return []
        result = await self.session.execute(
            select(Contact)
            .where(
                Contact.client_id.in_(client_ids),
                Contact.status != ContactStatus.ARCHIVED.value,
            )
            .order_by(Contact.client_id, Contact.last_name)
        )
        return list(result.scalars().all())

    async def search(
        self,
        actor: SessionContext,
        query: str,
        client_id: str | None = None,
        contact_type: str | None = None,
        limit: int = 10,
    ) -> tuple[list[Contact], int]:
        """
        Search non-archived contacts across accessible clients.

        Returns:
            Tuple of (matching contacts up to limit, total matches)
        """
        stmt = (
            select(Contact)
            .join(Client, Client.id == Contact.client_id)
            .where(
                accessible_to(actor),
                Contact.status != ContactStatus.ARCHIVED.value,
                _matches(query),
            )
        )
        if client_id:
            stmt = stmt.where(Contact.client_id == client_id)
        if contact_type:
            stmt = stmt.where(Contact.contact_type == contact_type)

        page = await paginate_select(
            self.session,
            stmt.order_by(Contact.last_name, Contact.first_name),
            PageParams(page=1, limit=limit),
        )
        return page.items, page.total
