"""
Timeline Event Repository.

Data access for client timeline events: filtered listing and the
aggregates behind per-client timeline statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Select, func, or_, select

from crm.backend.core.pagination import PagedResult, PageParams, paginate_select
from crm.backend.core.security import SessionContext
from crm.backend.models.client import Client
from crm.backend.models.timeline_event import TimelineEvent
from crm.backend.repositories.base import BaseRepository
from crm.backend.repositories.client import accessible_to


@dataclass
class TimelineFilters:
    """Optional filters for listing a client's timeline."""

    event_types: list[str] = field(default_factory=list)
    importance: list[str] = field(default_factory=list)
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None
    sort_order: str = "desc"


class TimelineEventRepository(BaseRepository[TimelineEvent]):
    """Repository for TimelineEvent model."""

    model = TimelineEvent

    async def get_accessible(self, event_id: str, actor: SessionContext) -> TimelineEvent | None:
        """Get an event whose client the actor may access."""
        result = await self.session.execute(
            select(TimelineEvent)
            .join(Client, Client.id == TimelineEvent.client_id)
            .where(TimelineEvent.id == str(event_id), accessible_to(actor))
        )
        return result.scalar_one_or_none()

    def _list_statement(self, client_id: str, filters: TimelineFilters) -> Select:
        stmt = select(TimelineEvent).where(TimelineEvent.client_id == client_id)

        if filters.event_types:
            stmt = stmt.where(TimelineEvent.event_type.in_(filters.event_types))
        if filters.importance:
            stmt = stmt.where(TimelineEvent.importance.in_(filters.importance))
        if filters.start_date:
            stmt = stmt.where(TimelineEvent.created_at >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(TimelineEvent.created_at <= filters.end_date)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    TimelineEvent.title.ilike(pattern),
                    TimelineEvent.description.ilike(pattern),
                )
            )

        if filters.sort_order == "asc":
            return stmt.order_by(TimelineEvent.created_at.asc())
        return stmt.order_by(TimelineEvent.created_at.desc())

    async def list_for_client(
        self,
        client_id: str,
        filters: TimelineFilters,
        params: PageParams,
    ) -> PagedResult[TimelineEvent]:
        """One page of a client's timeline."""
        return await paginate_select(
            self.session, self._list_statement(client_id, filters), params
        )

    async def list_all_for_clients(self, client_ids: list[str]) -> list[TimelineEvent]:
        """Every event of several clients, newest first, for exports."""
        if not client_ids:
            return []
        result = await self.session.execute(
            select(TimelineEvent)
            .where(TimelineEvent.client_id.in_(client_ids))
            .order_by(TimelineEvent.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_by(
        self,
        column_name: str,
        client_id: str,
        since: datetime | None = None,
    ) -> dict[str, int]:
        """Event counts grouped by a column ("event_type" or "importance")."""
        column = getattr(TimelineEvent, column_name)
        stmt = (
            select(column, func.count())
            .where(TimelineEvent.client_id == client_id)
            .group_by(column)
        )
        if since is not None:
            stmt = stmt.where(TimelineEvent.created_at >= since)
        result = await self.session.execute(stmt)
        return {key: count for key, count in result.all()}

    async def last_event_at(self, client_id: str) -> datetime | None:
        result = await self.session.execute(
            select(func.max(TimelineEvent.created_at)).where(
                TimelineEvent.client_id == client_id
            )
        )
        return result.scalar_one_or_none()
