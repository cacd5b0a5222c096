"""
Statistics Service.

Organization-wide client statistics for reports and the dashboard.
Results are read through a Redis cache keyed by organization, operation
and parameters; entries expire after the configured TTL.
"""

from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import get_json, set_json, statistics_cache_key
from crm.backend.core.config import get_app_config
from crm.backend.core.security import SessionContext
from crm.backend.core.utils import percentage, period_start, utc_now
from crm.backend.models.client import Client
from crm.backend.models.enums import ClientStatus, ClientType, RiskLevel, VatStatus
from crm.backend.repositories.statistics import StatisticsRepository
from crm.backend.schemas.statistics import (
    ActiveClient,
    ActivityByType,
    ActivityStatistics,
    ClientGrowth,
    DashboardAlerts,
    DashboardGrowth,
    DashboardQuickStats,
    DashboardSummary,
    GrowthDataPoint,
    RiskBucket,
    RiskDistribution,
    StatisticsOverview,
    TagStatistic,
    TagStatistics,
    TopClient,
    TopClients,
    VatBucket,
    VatStatistics,
)
from crm.backend.services.audit import AuditLogger
from crm.backend.services.base import CrmService

ResultT = TypeVar("ResultT", bound=BaseModel)

METRIC_LABELS = {
    "events": "Timeline events",
    "contacts": "Contacts",
    "documents": "Documents",
    "risk_score": "Risk score",
}

MOST_ACTIVE_LIMIT = 5


def growth_trend(last_7_days: int, last_30_days: int) -> str:
    """Compare the last week with the monthly pace."""
    if last_7_days > last_30_days / 4:
        return "up"
    if last_7_days < last_30_days / 5:
        return "down"
    return "stable"


def percent_change(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


class StatisticsService(CrmService):
    """Read-only statistics scoped to the caller's organization."""

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
        cache_ttl_seconds: int = 300,
        cache_prefix: str = "statistics",
        cache_enabled: bool = True,
    ) -> None:
        super().__init__(session, cache, actor, audit)
        self.repo = StatisticsRepository(session)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.cache_prefix = cache_prefix
        self.cache_enabled = cache_enabled

    @classmethod
    def for_request(
        cls,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
    ) -> "StatisticsService":
        config = get_app_config()
        return cls(
            session,
            cache,
            actor,
            AuditLogger(session, enabled=config.features.audit_log_enabled),
            cache_ttl_seconds=config.crm.statistics.cache_ttl_seconds,
            cache_prefix=config.crm.statistics.cache_prefix,
            cache_enabled=config.features.statistics_cache_enabled,
        )

    @property
    def organization_id(self) -> str:
        return self.actor.organization_id

    async def _cached(
        self,
        operation: str,
        params: dict[str, Any],
        schema: type[ResultT],
        compute: Callable[[], Awaitable[ResultT]],
    ) -> ResultT:
        """Return a cached result or compute, store and return it."""
        if not self.cache_enabled:
            return await compute()

        key = statistics_cache_key(self.cache_prefix, self.organization_id, operation, params)
        cached = await get_json(self.cache, key)
        if cached is not None:
            self._log_debug("Statistics cache hit", key=key)
            return schema.model_validate(cached)

        result = await compute()
        await set_json(self.cache, key, result.model_dump(mode="json"), self.cache_ttl_seconds)
        self._log_debug("Statistics cached", key=key, ttl=self.cache_ttl_seconds)
        return result

    async def _period_bounds(self, period: str, now: datetime) -> datetime | None:
        """Start of a period; for all_time, the first client's creation."""
        start = period_start(period, now)
        if start is None:
            start = await self.repo.earliest_client_created_at(self.organization_id)
        return start

    # -------------------------------------------------------------------------
    # Overview and growth
    # -------------------------------------------------------------------------

    async def overview(self, period: str = "month") -> StatisticsOverview:
        return await self._cached(
            "overview", {"period": period}, StatisticsOverview, lambda: self._overview(period)
        )

    async def _overview(self, period: str) -> StatisticsOverview:
        org = self.organization_id
        now = utc_now()
        start = period_start(period, now)

        by_type = await self.repo.group_clients_by(org, "client_type")
        by_status = await self.repo.group_clients_by(org, "status")

        new_this_period = await self.repo.count_created_between(org, start, now)
        if start is None:
            change = 0.0
        else:
            previous = await self.repo.count_created_between(org, start - (now - start), start)
            change = percent_change(new_this_period, previous)

        return StatisticsOverview(
            total_clients=await self.repo.count_clients(org),
            active_clients=await self.repo.count_clients(org, Client.status == ClientStatus.ACTIVE.value),
            archived_clients=await self.repo.count_clients(org, Client.archived_at.is_not(None)),
            by_type={t.value: by_type.get(t.value, 0) for t in ClientType},
            by_status={s.value: by_status.get(s.value, 0) for s in ClientStatus},
            new_clients_this_period=new_this_period,
            new_clients_change=change,
            period=period,
            period_start=start,
            period_end=now,
        )

    async def growth(self, period: str = "month", intervals: int = 12) -> ClientGrowth:
        return await self._cached(
            "growth",
            {"period": period, "intervals": intervals},
            ClientGrowth,
            lambda: self._growth(period, intervals),
        )

    async def _growth(self, period: str, intervals: int) -> ClientGrowth:
        """
        Split the period into equal intervals and count clients per interval.

        ``total_clients`` of a point counts every client created before the
        end of its interval.
        """
        org = self.organization_id
        now = utc_now()
        start = await self._period_bounds(period, now) or now
        step = (now - start) / intervals

        points: list[GrowthDataPoint] = []
        for i in range(intervals):
            interval_start = start + step * i
            interval_end = start + step * (i + 1)
            new_clients = await self.repo.count_created_between(org, interval_start, interval_end)
            archived = await self.repo.count_archived_between(org, interval_start, interval_end)
            points.append(
                GrowthDataPoint(
                    date=interval_start,
                    total_clients=await self.repo.count_created_between(
                        org, None, interval_end + timedelta(microseconds=1)
                    ),
                    new_clients=new_clients,
                    archived_clients=archived,
                    net_growth=new_clients - archived,
                )
            )

        first = points[0].total_clients if points else 0
        last = points[-1].total_clients if points else 0
        rate = (last - first) / first * 100 / intervals if first > 0 else 0.0

        return ClientGrowth(
            data_points=points,
            total_growth=last - first,
            average_growth_rate=round(rate, 2),
            period=period,
        )

    # -------------------------------------------------------------------------
    # Distributions
    # -------------------------------------------------------------------------

    async def tag_stats(self, limit: int = 20, include_archived: bool = False) -> TagStatistics:
        return await self._cached(
            "tags",
            {"limit": limit, "include_archived": include_archived},
            TagStatistics,
            lambda: self._tag_stats(limit, include_archived),
        )

    async def _tag_stats(self, limit: int, include_archived: bool) -> TagStatistics:
        tag_lists = await self.repo.client_tag_lists(self.organization_id, include_archived)
        tagged = [tags for tags in tag_lists if tags]
        counts = Counter(tag for tags in tagged for tag in tags)
        total_clients = len(tag_lists)
        average = round(sum(len(tags) for tags in tagged) / len(tagged), 1) if tagged else 0.0

        return TagStatistics(
            tags=[
                TagStatistic(tag=tag, count=count, percentage=percentage(count, total_clients))
                for tag, count in counts.most_common(limit)
            ],
            total_tagged_clients=len(tagged),
            total_untagged_clients=total_clients - len(tagged),
            average_tags_per_client=average,
        )

    async def risk(self, include_archived: bool = False) -> RiskDistribution:
        return await self._cached(
            "risk",
            {"include_archived": include_archived},
            RiskDistribution,
            lambda: self._risk(include_archived),
        )

    async def _risk(self, include_archived: bool) -> RiskDistribution:
        org = self.organization_id
        by_level = await self.repo.group_clients_by(org, "risk_level", include_archived)
        total = sum(by_level.values())
        not_assessed = by_level.get(None, 0)

        buckets = [
            RiskBucket(
                level=level.value,
                count=by_level.get(level.value, 0),
                percentage=percentage(by_level.get(level.value, 0), total),
            )
            for level in RiskLevel
        ]
        buckets.append(
            RiskBucket(level="not_assessed", count=not_assessed, percentage=percentage(not_assessed, total))
        )
        average = await self.repo.average_risk_score(org, include_archived)

        return RiskDistribution(
            distribution=buckets,
            total_assessed=total - not_assessed,
            total_not_assessed=not_assessed,
            average_risk_score=round(average, 1) if average is not None else 0.0,
        )

    async def vat(self, include_archived: bool = False) -> VatStatistics:
        return await self._cached(
            "vat",
            {"include_archived": include_archived},
            VatStatistics,
            lambda: self._vat(include_archived),
        )

    async def _vat(self, include_archived: bool) -> VatStatistics:
        by_status = await self.repo.group_clients_by(self.organization_id, "vat_status", include_archived)
        total = sum(by_status.values())
        not_validated = by_status.get(VatStatus.NOT_VALIDATED.value, 0)
        validated = total - not_validated

        return VatStatistics(
            distribution=[
                VatBucket(
                    status=status.value,
                    count=by_status.get(status.value, 0),
                    percentage=percentage(by_status.get(status.value, 0), total),
                )
                for status in VatStatus
            ],
            total_validated=validated,
            total_not_validated=not_validated,
            validation_rate=percentage(validated, total),
        )

    # -------------------------------------------------------------------------
    # Activity and rankings
    # -------------------------------------------------------------------------

    async def activity(self, period: str = "month", client_id: str | None = None) -> ActivityStatistics:
        return await self._cached(
            "activity",
            {"period": period, "client_id": client_id},
            ActivityStatistics,
            lambda: self._activity(period, client_id),
        )

    async def _activity(self, period: str, client_id: str | None) -> ActivityStatistics:
        org = self.organization_id
        since = period_start(period)

        total = await self.repo.count_events(org, since, client_id)
        by_type = await self.repo.events_by_type(org, since, client_id)
        active_clients = await self.repo.count_active_clients_with_events(org, since, client_id)
        if client_id:
            most_active = []
        else:
            most_active = await self.repo.most_active_clients(org, since, MOST_ACTIVE_LIMIT)

        return ActivityStatistics(
            total_events=total,
            by_type=[
                ActivityByType(type=event_type, count=count)
                for event_type, count in sorted(by_type.items(), key=lambda item: -item[1])
            ],
            most_active_clients=[ActiveClient(**row) for row in most_active],
            average_events_per_client=round(total / active_clients, 1) if active_clients else 0.0,
            period=period,
        )

    async def top_clients(self, metric: str = "events", limit: int = 10, order: str = "desc") -> TopClients:
        return await self._cached(
            "top_clients",
            {"metric": metric, "limit": limit, "order": order},
            TopClients,
            lambda: self._top_clients(metric, limit, order),
        )

    async def _top_clients(self, metric: str, limit: int, order: str) -> TopClients:
        rows = await self.repo.top_clients(self.organization_id, metric, limit, order)
        clients = [
            TopClient(
                client_id=row["client_id"],
                client_name=row["client_name"],
                client_type=row["client_type"],
                metric_value=float(row["metric_value"] or 0),
                metric_label=METRIC_LABELS[metric],
            )
            for row in rows
        ]
        return TopClients(clients=clients, metric=metric, total=len(clients))

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    async def dashboard(self, period: str = "month") -> DashboardSummary:
        return await self._cached(
            "dashboard", {"period": period}, DashboardSummary, lambda: self._dashboard(period)
        )

    async def _dashboard(self, period: str) -> DashboardSummary:
        org = self.organization_id
        now = utc_now()

        last_7 = await self.repo.count_created_between(org, now - timedelta(days=7), now)
        last_30 = await self.repo.count_created_between(org, now - timedelta(days=30), now)

        active_clients = await self.repo.count_clients(org, Client.archived_at.is_(None))
        events = await self.repo.count_events(org)
        contacts = await self.repo.count_contacts(org)

        tag_counts = Counter(
            tag for tags in await self.repo.client_tag_lists(org, include_archived=True) for tag in tags
        )
        top_tag = tag_counts.most_common(1)[0][0] if tag_counts else None

        return DashboardSummary(
            overview=await self._overview(period),
            growth=DashboardGrowth(
                last_7_days=last_7,
                last_30_days=last_30,
                trend=growth_trend(last_7, last_30),
            ),
            alerts=DashboardAlerts(
                high_risk_clients=await self.repo.count_clients(
                    org,
                    Client.archived_at.is_(None),
                    Client.risk_level.in_([RiskLevel.HIGH.value, RiskLevel.CRITICAL.value]),
                ),
                expired_vat_validations=await self.repo.count_clients(
                    org,
                    Client.archived_at.is_(None),
                    Client.vat_status == VatStatus.INVALID.value,
                ),
                incomplete_profiles=await self.repo.count_clients(
                    org,
                    Client.archived_at.is_(None),
                    Client.email.is_(None),
                ),
            ),
            quick_stats=DashboardQuickStats(
                avg_events_per_client=round(events / active_clients, 1) if active_clients else 0.0,
                avg_contacts_per_client=round(contacts / active_clients, 1) if active_clients else 0.0,
                top_tag=top_tag,
            ),
        )
