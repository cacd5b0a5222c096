"""
Statistics Repository.

Aggregate read queries over an organization's clients, contacts and
timeline events. Every query is scoped by organization_id.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select

from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.enums import ContactStatus
from crm.backend.models.timeline_event import TimelineEvent
from crm.backend.repositories.base import BaseRepository


class StatisticsRepository(BaseRepository[Client]):
    """Aggregates for dashboards and reports."""

    model = Client

    async def count_clients(self, organization_id: str, *criteria: Any) -> int:
        return await self.count(Client.organization_id == organization_id, *criteria)

    async def count_created_between(
        self,
        organization_id: str,
        start: datetime | None,
        end: datetime,
    ) -> int:
        """Clients created in [start, end). None start means since the beginning."""
        criteria = [Client.created_at < end]
        if start is not None:
            criteria.append(Client.created_at >= start)
        return await self.count_clients(organization_id, *criteria)

    async def count_archived_between(
        self,
        organization_id: str,
        start: datetime | None,
        end: datetime,
    ) -> int:
        criteria = [Client.archived_at.is_not(None), Client.archived_at < end]
        if start is not None:
            criteria.append(Client.archived_at >= start)
        return await self.count_clients(organization_id, *criteria)

    async def group_clients_by(
        self,
        organization_id: str,
        column_name: str,
        include_archived: bool = True,
    ) -> dict[str | None, int]:
        """Client counts grouped by a column of the clients table."""
        column = getattr(Client, column_name)
        stmt = (
            select(column, func.count())
            .where(Client.organization_id == organization_id)
            .group_by(column)
        )
        if not include_archived:
            stmt = stmt.where(Client.archived_at.is_(None))
        result = await self.session.execute(stmt)
        return {key: count for key, count in result.all()}

    async def average_risk_score(
        self,
        organization_id: str,
        include_archived: bool = True,
    ) -> float | None:
        stmt = select(func.avg(Client.risk_score)).where(
            Client.organization_id == organization_id,
            Client.risk_score.is_not(None),
        )
        if not include_archived:
            stmt = stmt.where(Client.archived_at.is_(None))
        result = await self.session.execute(stmt)
        value = result.scalar_one_or_none()
        return float(value) if value is not None else None

    async def client_tag_lists(
        self,
        organization_id: str,
        include_archived: bool = False,
    ) -> list[list[str]]:
        """The tags column of every client in the organization."""
        stmt = select(Client.tags).where(Client.organization_id == organization_id)
        if not include_archived:
            stmt = stmt.where(Client.archived_at.is_(None))
        result = await self.session.execute(stmt)
        return [list(tags or []) for tags in result.scalars().all()]

    async def count_contacts(self, organization_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Contact.id))
            .join(Client, Client.id == Contact.client_id)
            .where(
                Client.organization_id == organization_id,
                Contact.status != ContactStatus.ARCHIVED.value,
            )
        )
        return result.scalar_one()

    def _events_in(self, organization_id: str, since: datetime | None, client_id: str | None):
        criteria = [Client.organization_id == organization_id]
        if since is not None:
            criteria.append(TimelineEvent.created_at >= since)
        if client_id is not None:
            criteria.append(TimelineEvent.client_id == client_id)
        return criteria

    async def count_events(
        self,
        organization_id: str,
        since: datetime | None = None,
        client_id: str | None = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(TimelineEvent.id))
            .join(Client, Client.id == TimelineEvent.client_id)
            .where(*self._events_in(organization_id, since, client_id))
        )
        return result.scalar_one()

    async def events_by_type(
        self,
        organization_id: str,
        since: datetime | None = None,
        client_id: str | None = None,
    ) -> dict[str, int]:
        result = await self.session.execute(
            select(TimelineEvent.event_type, func.count(TimelineEvent.id))
            .join(Client, Client.id == TimelineEvent.client_id)
            .where(*self._events_in(organization_id, since, client_id))
            .group_by(TimelineEvent.event_type)
        )
        return {event_type: count for event_type, count in result.all()}

    async def count_active_clients_with_events(
        self,
        organization_id: str,
        since: datetime | None = None,
        client_id: str | None = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(func.distinct(TimelineEvent.client_id)))
            .join(Client, Client.id == TimelineEvent.client_id)
            .where(*self._events_in(organization_id, since, client_id))
        )
        return result.scalar_one()

    async def most_active_clients(
        self,
        organization_id: str,
        since: datetime | None = None,
        limit: int = 5,
    ) -> list[dict[str, Any]]:
        event_count = func.count(TimelineEvent.id).label("event_count")
        result = await self.session.execute(
            select(Client.id, Client.display_name, event_count)
            .join(TimelineEvent, TimelineEvent.client_id == Client.id)
            .where(*self._events_in(organization_id, since, None))
            .group_by(Client.id, Client.display_name)
            .order_by(event_count.desc(), Client.display_name)
            .limit(limit)
        )
        return [
            {"client_id": cid, "client_name": name, "event_count": count}
            for cid, name, count in result.all()
        ]

    async def top_clients(
        self,
        organization_id: str,
        metric: str,
        limit: int = 10,
        order: str = "desc",
    ) -> list[dict[str, Any]]:
        """
        Rank clients by a metric.

        Args:
            metric: "events", "contacts", "documents" or "risk_score"
            order: "asc" or "desc"
        """
        if metric == "risk_score":
            value = Client.risk_score
            criteria = [Client.risk_score.is_not(None)]
        else:
            if metric == "contacts":
                counted = select(func.count(Contact.id)).where(Contact.client_id == Client.id)
            else:
                counted = select(func.count(TimelineEvent.id)).where(TimelineEvent.client_id == Client.id)
                if metric == "documents":
                    counted = counted.where(TimelineEvent.related_document_id.is_not(None))
            # Correlated so clients with nothing to count still rank, at 0
            value = counted.correlate(Client).scalar_subquery()
            criteria = []

        ordering = value.asc() if order == "asc" else value.desc()
        stmt = (
            select(Client.id, Client.display_name, Client.client_type, value)
            .where(Client.organization_id == organization_id, *criteria)
            .order_by(ordering, Client.display_name)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [
            {
                "client_id": cid,
                "client_name": name,
                "client_type": client_type,
                "metric_value": metric_value,
            }
            for cid, name, client_type, metric_value in result.all()
        ]

    async def earliest_client_created_at(self, organization_id: str) -> datetime | None:
        result = await self.session.execute(
            select(func.min(Client.created_at)).where(Client.organization_id == organization_id)
        )
        return result.scalar_one_or_none()
