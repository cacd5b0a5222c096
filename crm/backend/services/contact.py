"""
Contact Service.

Business logic for client contacts: CRUD with soft delete, the one
primary contact per client and type rule, bulk creation and search.
"""

from typing import Any

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import contacts_cache_key, delete_keys
from crm.backend.core.exceptions import BadRequestError, NotFoundError
from crm.backend.core.pagination import PagedResult, PageParams
from crm.backend.core.security import SessionContext
from crm.backend.core.utils import utc_now
from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.enums import ContactStatus
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.contact import ContactFilters, ContactRepository
from crm.backend.schemas.base import IndexedError
from crm.backend.schemas.contact import (
    ContactBulkCreate,
    ContactBulkCreateResult,
    ContactCreate,
    ContactDeleteResult,
    ContactFields,
    ContactListParams,
    ContactResponse,
    ContactSearchParams,
    ContactSearchResult,
    ContactUpdate,
    SetPrimaryResult,
)
from crm.backend.services.audit import AuditEvent, AuditLogger
from crm.backend.services.base import CrmService


class ContactService(CrmService):
    """
    Service for contact business logic.

    Every operation first resolves the owning client through the
    caller's access rule; contacts of inaccessible clients are
    reported as not found.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
    ) -> None:
        super().__init__(session, cache, actor, audit)
        self.clients = ClientRepository(session)
        self.repo = ContactRepository(session)

    async def _require_client(self, client_id: str) -> Client:
        client = await self.clients.get_accessible(client_id, self.actor)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    async def _require_contact(self, contact_id: str) -> Contact:
        contact = await self.repo.get_accessible(contact_id, self.actor)
        if contact is None:
            raise NotFoundError("Contact not found")
        return contact

    async def _invalidate(self, client_id: str) -> None:
        await self._invalidate_clients([client_id])
        await delete_keys(self.cache, [contacts_cache_key(client_id)])

    async def _insert(self, client_id: str, fields: ContactFields) -> Contact:
        data = fields.model_dump()
        if data["is_primary"]:
            await self.repo.clear_primary(client_id, data["contact_type"])
        return await self.repo.create(
            client_id=client_id,
            created_by=self.actor.user_id,
            status=ContactStatus.ACTIVE.value,
            **data,
        )

    async def create(self, data: ContactCreate) -> ContactResponse:
        """
        Create a contact for an accessible client.

        Raises:
            NotFoundError: If the client does not exist or is not accessible
        """
        await self._require_client(data.client_id)
        self._log_operation("Creating contact", client_id=data.client_id)

        fields = ContactFields.model_validate(data.model_dump(exclude={"client_id"}))
        contact = await self._execute_db_operation(
            "create_contact",
            self._insert(data.client_id, fields),
        )

        await self._invalidate(contact.client_id)
        await self._audit(
            AuditEvent.CONTACT_CREATED,
            metadata={"client_id": contact.client_id, "is_primary": contact.is_primary},
            resource_type="contact",
            resource_id=contact.id,
        )
        return ContactResponse.model_validate(contact)

    async def get(self, contact_id: str) -> ContactResponse:
        """
        Raises:
            NotFoundError: If the contact does not exist or its client is not accessible
        """
        return ContactResponse.model_validate(await self._require_contact(contact_id))

    async def update(self, contact_id: str, data: ContactUpdate) -> ContactResponse:
        """
        Update a contact. Archived contacts must be restored first.

        Raises:
            NotFoundError: If the contact is not found
            BadRequestError: If the contact is archived
        """
        contact = await self._require_contact(contact_id)
        if contact.status == ContactStatus.ARCHIVED:
            raise BadRequestError("Cannot update an archived contact")

        changes: dict[str, Any] = data.model_dump(exclude_unset=True)
        if not changes:
            return ContactResponse.model_validate(contact)

        self._log_operation("Updating contact", contact_id=contact.id, fields=list(changes))

        becomes_primary = changes.get("is_primary", contact.is_primary)
        contact_type = changes.get("contact_type", contact.contact_type)

        async def write() -> Contact:
            if becomes_primary:
                await self.repo.clear_primary(contact.client_id, contact_type, exclude_id=contact.id)
            return await self.repo.apply(contact, **changes)

        contact = await self._execute_db_operation("update_contact", write())

        await self._invalidate(contact.client_id)
        await self._audit(
            AuditEvent.CONTACT_UPDATED,
            metadata={"client_id": contact.client_id, "fields": sorted(changes)},
            resource_type="contact",
            resource_id=contact.id,
        )
        return ContactResponse.model_validate(contact)

    async def list_contacts(self, params: ContactListParams) -> PagedResult[Contact]:
        await self._require_client(params.client_id)
        filters = ContactFilters(
            contact_type=params.contact_type.value if params.contact_type else None,
            status=params.status.value if params.status else None,
            search=params.search,
            sort_by=params.sort_by,
            sort_order=params.sort_order,
        )
        return await self.repo.list_for_client(
            params.client_id,
            filters,
            PageParams(page=params.page, limit=params.limit),
        )

    async def delete(self, contact_id: str, permanent: bool = False) -> ContactDeleteResult:
        """
        Archive a contact, or remove it entirely when ``permanent``.

        Raises:
            NotFoundError: If the contact is not found
        """
        contact = await self._require_contact(contact_id)
        client_id = contact.client_id
        self._log_operation("Deleting contact", contact_id=contact.id, permanent=permanent)

        if permanent:
            await self._execute_db_operation("delete_contact", self.repo.delete(contact.id))
            event, message = AuditEvent.CONTACT_DELETED, "Contact deleted permanently"
        else:
            await self._execute_db_operation(
                "archive_contact",
                self.repo.apply(
                    contact,
                    status=ContactStatus.ARCHIVED.value,
                    is_primary=False,
                    archived_at=utc_now(),
                ),
            )
            event, message = AuditEvent.CONTACT_ARCHIVED, "Contact archived"

        await self._invalidate(client_id)
        await self._audit(
            event,
            metadata={"client_id": client_id},
            resource_type="contact",
            resource_id=contact_id,
        )
        return ContactDeleteResult(archived=not permanent, message=message)

    async def restore(self, contact_id: str) -> ContactResponse:
        """
        Raises:
            NotFoundError: If the contact is not found
            BadRequestError: If the contact is not archived
        """
        contact = await self._require_contact(contact_id)
        if contact.status != ContactStatus.ARCHIVED:
            raise BadRequestError("Contact is not archived")

        contact = await self._execute_db_operation(
            "restore_contact",
            self.repo.apply(contact, status=ContactStatus.ACTIVE.value, archived_at=None),
        )
        await self._invalidate(contact.client_id)
        await self._audit(
            AuditEvent.CONTACT_RESTORED,
            metadata={"client_id": contact.client_id},
            resource_type="contact",
            resource_id=contact.id,
        )
        return ContactResponse.model_validate(contact)

    async def set_primary(self, contact_id: str, contact_type: str | None = None) -> SetPrimaryResult:
        """
        Make a contact the primary one for a type, demoting the previous one.

        Raises:
            NotFoundError: If the contact is not found
            BadRequestError: If it is archived or already primary for the type
        """
        contact = await self._require_contact(contact_id)
        if contact.status == ContactStatus.ARCHIVED:
            raise BadRequestError("Cannot set an archived contact as primary")

        target_type = contact_type or contact.contact_type
        if contact.is_primary and contact.contact_type == target_type:
            raise BadRequestError("Contact is already the primary contact")

        async def write() -> tuple[Contact, Contact | None]:
            previous = await self.repo.clear_primary(
                contact.client_id, target_type, exclude_id=contact.id
            )
            updated = await self.repo.apply(contact, is_primary=True, contact_type=target_type)
            return updated, previous

        updated, previous = await self._execute_db_operation("set_primary_contact", write())

        await self._invalidate(updated.client_id)
        await self._audit(
            AuditEvent.CONTACT_PRIMARY_SET,
            metadata={
                "client_id": updated.client_id,
                "contact_type": target_type,
                "previous_primary_id": previous.id if previous else None,
            },
            resource_type="contact",
            resource_id=updated.id,
        )
        return SetPrimaryResult(
            contact=ContactResponse.model_validate(updated),
            previous_primary=ContactResponse.model_validate(previous) if previous else None,
        )

    async def bulk_create(self, data: ContactBulkCreate) -> ContactBulkCreateResult:
        """
        Create several contacts for one client. Failures are reported by
        input position and do not stop the remaining contacts.
        """
        await self._require_client(data.client_id)
        self._log_operation("Bulk creating contacts", client_id=data.client_id, count=len(data.contacts))

        created: list[Contact] = []
        errors: list[IndexedError] = []
        for index, fields in enumerate(data.contacts):
            try:
                async with self.session.begin_nested():
                    contact = await self._insert(data.client_id, fields)
                created.append(contact)
            except SQLAlchemyError as e:
                self._logger.warning(
                    "Contact creation failed",
                    extra={"client_id": data.client_id, "index": index, "error": str(e)},
                )
                errors.append(IndexedError(index=index, error="Database error"))

        if created:
            await self._invalidate(data.client_id)
            await self._audit(
                AuditEvent.CONTACTS_BULK_CREATED,
                metadata={"client_id": data.client_id, "created": len(created), "failed": len(errors)},
                resource_type="client",
                resource_id=data.client_id,
            )
        return ContactBulkCreateResult(
            processed=len(data.contacts),
            created=len(created),
            failed=len(errors),
            contacts=[ContactResponse.model_validate(c) for c in created],
            errors=errors,
        )

    async def search(self, params: ContactSearchParams) -> ContactSearchResult:
        contacts, total = await self.repo.search(
            self.actor,
            params.query,
            client_id=params.client_id,
            contact_type=params.contact_type.value if params.contact_type else None,
            limit=params.limit,
        )
        return ContactSearchResult(
            contacts=[ContactResponse.model_validate(c) for c in contacts],
            total=total,
        )
