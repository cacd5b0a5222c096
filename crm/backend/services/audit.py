"""
Audit Logger.

Records one structured audit row per mutating CRM operation, carrying
the acting user, their organization, the request correlation ID, and
the caller's IP address.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.logging import get_logger
from crm.backend.core.security import SessionContext
from crm.backend.models.audit_log import AuditLog
from crm.backend.repositories.audit_log import AuditLogRepository

logger = get_logger(__name__)


class AuditEvent:
    """Audit event type names."""

    CLIENTS_BULK_ARCHIVED = "CLIENTS_BULK_ARCHIVED"
    CLIENTS_BULK_RESTORED = "CLIENTS_BULK_RESTORED"
    CLIENTS_BULK_DELETED = "CLIENTS_BULK_DELETED"
    CLIENTS_BULK_STATUS_UPDATED = "CLIENTS_BULK_STATUS_UPDATED"
    CLIENTS_BULK_TAGS_UPDATED = "CLIENTS_BULK_TAGS_UPDATED"
    CLIENTS_BULK_OWNER_ASSIGNED = "CLIENTS_BULK_OWNER_ASSIGNED"
    CLIENTS_EXPORT_REQUESTED = "CLIENTS_EXPORT_REQUESTED"
    BULK_OPERATION_CANCELLED = "BULK_OPERATION_CANCELLED"

    CONTACT_CREATED = "CONTACT_CREATED"
    CONTACT_UPDATED = "CONTACT_UPDATED"
    CONTACT_ARCHIVED = "CONTACT_ARCHIVED"
    CONTACT_DELETED = "CONTACT_DELETED"
    CONTACT_RESTORED = "CONTACT_RESTORED"
    CONTACT_PRIMARY_SET = "CONTACT_PRIMARY_SET"
    CONTACTS_BULK_CREATED = "CONTACTS_BULK_CREATED"

    TIMELINE_EVENT_CREATED = "TIMELINE_EVENT_CREATED"
    TIMELINE_EVENT_UPDATED = "TIMELINE_EVENT_UPDATED"
    TIMELINE_EVENT_DELETED = "TIMELINE_EVENT_DELETED"
    TIMELINE_EVENTS_BULK_CREATED = "TIMELINE_EVENTS_BULK_CREATED"

    TAG_CATEGORY_CREATED = "TAG_CATEGORY_CREATED"
    TAG_CATEGORY_UPDATED = "TAG_CATEGORY_UPDATED"
    TAG_CATEGORY_DELETED = "TAG_CATEGORY_DELETED"
    TAG_CREATED = "TAG_CREATED"
    TAG_UPDATED = "TAG_UPDATED"
    TAG_ARCHIVED = "TAG_ARCHIVED"
    TAG_RESTORED = "TAG_RESTORED"
    TAG_DELETED = "TAG_DELETED"
    TAGS_ASSIGNED = "TAGS_ASSIGNED"
    TAGS_REMOVED = "TAGS_REMOVED"
    TAGS_REPLACED = "TAGS_REPLACED"
    TAGS_BULK_OPERATION = "TAGS_BULK_OPERATION"


class AuditLogger:
    """Writes audit rows in the caller's transaction."""

    def __init__(self, session: AsyncSession, enabled: bool = True) -> None:
        self.repo = AuditLogRepository(session)
        self.enabled = enabled

    async def log(
        self,
        event_type: str,
        actor: SessionContext,
        metadata: dict[str, Any] | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> AuditLog | None:
        """
        Record an audit event.

        Returns:
            The stored row, or None when audit logging is disabled
        """
        if not self.enabled:
            return None

        entry = await self.repo.create(
            event_type=event_type,
            user_id=actor.user_id,
            organization_id=actor.organization_id,
            resource_type=resource_type,
            resource_id=resource_id,
            event_metadata=metadata or {},
            correlation_id=actor.request_id,
            ip_address=actor.ip_address,
        )
        logger.info(
            "Audit event recorded",
            extra={"event_type": event_type, "resource_id": resource_id},
        )
        return entry
