"""
Timeline Service.

Business logic for the client activity timeline: user-entered events,
system events written by other services, and per-client statistics.
"""

from datetime import timedelta
from typing import Any

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import BadRequestError, NotFoundError
from crm.backend.core.pagination import PagedResult, PageParams
from crm.backend.core.security import SessionContext
from crm.backend.core.utils import period_start, to_naive_utc, utc_now
from crm.backend.models.client import Client
from crm.backend.models.enums import EventType, Importance
from crm.backend.models.timeline_event import TimelineEvent
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.contact import ContactRepository
from crm.backend.repositories.timeline_event import TimelineEventRepository, TimelineFilters
from crm.backend.schemas.base import IndexedError
from crm.backend.schemas.timeline import (
    TimelineBulkCreate,
    TimelineBulkCreateResult,
    TimelineEventCreate,
    TimelineEventFields,
    TimelineEventResponse,
    TimelineEventUpdate,
    TimelineListParams,
    TimelineStats,
)
from crm.backend.services.audit import AuditEvent, AuditLogger
from crm.backend.services.base import CrmService

_DATE_FIELDS = ("scheduled_at", "due_at", "completed_at")

RECENT_ACTIVITY_DAYS = 7


def _event_columns(fields: dict[str, Any]) -> dict[str, Any]:
    """Map schema field names onto model columns."""
    columns = dict(fields)
    if "metadata" in columns:
        columns["event_metadata"] = columns.pop("metadata")
    for name in _DATE_FIELDS:
        if name in columns:
            columns[name] = to_naive_utc(columns[name])
    return columns


class TimelineService(CrmService):
    """Service for timeline events of accessible clients."""

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
    ) -> None:
        super().__init__(session, cache, actor, audit)
        self.clients = ClientRepository(session)
        self.contacts = ContactRepository(session)
        self.repo = TimelineEventRepository(session)

    async def _require_client(self, client_id: str) -> Client:
        client = await self.clients.get_accessible(client_id, self.actor)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    async def _require_event(self, event_id: str) -> TimelineEvent:
        event = await self.repo.get_accessible(event_id, self.actor)
        if event is None:
            raise NotFoundError("Timeline event not found")
        return event

    async def _insert(self, client_id: str, fields: TimelineEventFields, **extra: Any) -> TimelineEvent:
        return await self.repo.create(
            client_id=client_id,
            user_id=self.actor.user_id,
            **_event_columns(fields.model_dump()),
            **extra,
        )

    async def create(self, data: TimelineEventCreate) -> TimelineEventResponse:
        """
        Add an event to a client's timeline.

        Raises:
            NotFoundError: If the client is not accessible
            BadRequestError: If the related contact belongs to another client
        """
        await self._require_client(data.client_id)

        if data.related_contact_id:
            contact = await self.contacts.get_by_id_or_none(data.related_contact_id)
            if contact is None or contact.client_id != data.client_id:
                raise BadRequestError("Related contact does not belong to this client")

        self._log_operation("Creating timeline event", client_id=data.client_id, event_type=data.event_type)

        fields = TimelineEventFields.model_validate(
            data.model_dump(exclude={"client_id", "related_contact_id", "related_document_id"})
        )
        event = await self._execute_db_operation(
            "create_timeline_event",
            self._insert(
                data.client_id,
                fields,
                related_contact_id=data.related_contact_id,
                related_document_id=data.related_document_id,
            ),
        )

        await self._invalidate_clients([data.client_id])
        await self._audit(
            AuditEvent.TIMELINE_EVENT_CREATED,
            metadata={"client_id": data.client_id, "event_type": event.event_type},
            resource_type="timeline_event",
            resource_id=event.id,
        )
        return TimelineEventResponse.model_validate(event)

    async def create_system_event(
        self,
        client_id: str,
        event_type: EventType,
        title: str,
        description: str | None = None,
        importance: Importance = Importance.NORMAL,
        metadata: dict[str, Any] | None = None,
        related_contact_id: str | None = None,
        related_document_id: str | None = None,
    ) -> TimelineEvent:
        """
        Record an event generated by the system rather than a user.

        Used by other services; no access check or audit entry.
        """
        event = await self._execute_db_operation(
            "create_system_event",
            self.repo.create(
                client_id=client_id,
                user_id=self.actor.user_id,
                event_type=event_type.value,
                title=title,
                description=description,
                importance=importance.value,
                event_metadata=metadata,
                related_contact_id=related_contact_id,
                related_document_id=related_document_id,
                is_system=True,
            ),
        )
        self._log_debug("System event recorded", client_id=client_id, event_type=event_type)
        return event

    async def get(self, event_id: str) -> TimelineEventResponse:
        return TimelineEventResponse.model_validate(await self._require_event(event_id))

    async def update(self, event_id: str, data: TimelineEventUpdate) -> TimelineEventResponse:
        """
        Raises:
            NotFoundError: If the event is not found
        """
        event = await self._require_event(event_id)
        changes = _event_columns(data.model_dump(exclude_unset=True))
        if not changes:
            return TimelineEventResponse.model_validate(event)

        self._log_operation("Updating timeline event", event_id=event.id, fields=list(changes))
        event = await self._execute_db_operation(
            "update_timeline_event",
            self.repo.apply(event, **changes),
        )

        await self._invalidate_clients([event.client_id])
        await self._audit(
            AuditEvent.TIMELINE_EVENT_UPDATED,
            metadata={"client_id": event.client_id, "fields": sorted(changes)},
            resource_type="timeline_event",
            resource_id=event.id,
        )
        return TimelineEventResponse.model_validate(event)

    async def delete(self, event_id: str) -> None:
        """
        Permanently remove an event.

        Raises:
            NotFoundError: If the event is not found
        """
        event = await self._require_event(event_id)
        client_id = event.client_id
        self._log_operation("Deleting timeline event", event_id=event_id)

        await self._execute_db_operation("delete_timeline_event", self.repo.delete(event.id))

        await self._invalidate_clients([client_id])
        await self._audit(
            AuditEvent.TIMELINE_EVENT_DELETED,
            metadata={"client_id": client_id},
            resource_type="timeline_event",
            resource_id=event_id,
        )

    async def list_events(self, params: TimelineListParams) -> PagedResult[TimelineEvent]:
        await self._require_client(params.client_id)
        filters = TimelineFilters(
            event_types=[t.value for t in params.event_types],
            importance=[i.value for i in params.importance],
            start_date=to_naive_utc(params.start_date),
            end_date=to_naive_utc(params.end_date),
            search=params.search,
            sort_order=params.sort_order,
        )
        return await self.repo.list_for_client(
            params.client_id,
            filters,
            PageParams(page=params.page, limit=params.limit),
        )

    async def bulk_create(self, data: TimelineBulkCreate) -> TimelineBulkCreateResult:
        """Create several events for one client, reporting failures by position."""
        await self._require_client(data.client_id)
        self._log_operation("Bulk creating timeline events", client_id=data.client_id, count=len(data.events))

        created: list[TimelineEvent] = []
        errors: list[IndexedError] = []
        for index, fields in enumerate(data.events):
            try:
                async with self.session.begin_nested():
                    event = await self._insert(data.client_id, fields)
                created.append(event)
            except SQLAlchemyError as e:
                self._logger.warning(
                    "Timeline event creation failed",
                    extra={"client_id": data.client_id, "index": index, "error": str(e)},
                )
                errors.append(IndexedError(index=index, error="Database error"))

        if created:
            await self._invalidate_clients([data.client_id])
            await self._audit(
                AuditEvent.TIMELINE_EVENTS_BULK_CREATED,
                metadata={"client_id": data.client_id, "created": len(created), "failed": len(errors)},
                resource_type="client",
                resource_id=data.client_id,
            )
        return TimelineBulkCreateResult(
            processed=len(data.events),
            created=len(created),
            failed=len(errors),
            events=[TimelineEventResponse.model_validate(e) for e in created],
            errors=errors,
        )

    async def get_stats(self, client_id: str, period: str = "month") -> TimelineStats:
        """
        Event counts for a client over a period, plus the last seven days.

        Raises:
            NotFoundError: If the client is not accessible
        """
        await self._require_client(client_id)
        now = utc_now()
        since = period_start(period, now)

        by_type = await self.repo.count_by("event_type", client_id, since)
        by_importance = await self.repo.count_by("importance", client_id, since)
        recent = await self.repo.count_by(
            "event_type", client_id, now - timedelta(days=RECENT_ACTIVITY_DAYS)
        )

        return TimelineStats(
            client_id=client_id,
            period=period,
            total_events=sum(by_type.values()),
            events_by_type=by_type,
            events_by_importance=by_importance,
            recent_activity=sum(recent.values()),
            last_event_at=await self.repo.last_event_at(client_id),
        )
