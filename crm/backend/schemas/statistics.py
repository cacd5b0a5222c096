"""
Statistics Schemas.

Query parameters and result shapes for organization statistics and
the dashboard summary. Results are cached as JSON, so every model
here round-trips through ``model_dump(mode="json")``.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from crm.backend.schemas.base import UUIDStr

StatisticsPeriod = Literal["day", "week", "month", "quarter", "year", "all_time"]


class TopClientsParams(BaseModel):
    metric: Literal["events", "contacts", "documents", "risk_score"] = "events"
    limit: int = Field(default=10, ge=1, le=100)
    order: Literal["asc", "desc"] = "desc"


class ActivityParams(BaseModel):
    period: StatisticsPeriod = "month"
    client_id: UUIDStr | None = None


class StatisticsOverview(BaseModel):
    total_clients: int
    active_clients: int
    archived_clients: int
    by_type: dict[str, int]
    by_status: dict[str, int]
    new_clients_this_period: int
    new_clients_change: float = Field(description="Percent change against the previous period")
    period: StatisticsPeriod
    period_start: datetime | None
    period_end: datetime


class GrowthDataPoint(BaseModel):
    date: datetime
    total_clients: int
    new_clients: int
    archived_clients: int
    net_growth: int


class ClientGrowth(BaseModel):
    data_points: list[GrowthDataPoint]
    total_growth: int
    average_growth_rate: float
    period: StatisticsPeriod


class TagStatistic(BaseModel):
    tag: str
    count: int
    percentage: float


class TagStatistics(BaseModel):
    tags: list[TagStatistic]
    total_tagged_clients: int
    total_untagged_clients: int
    average_tags_per_client: float


class RiskBucket(BaseModel):
    level: Literal["low", "medium", "high", "critical", "not_assessed"]
    count: int
    percentage: float


class RiskDistribution(BaseModel):
    distribution: list[RiskBucket]
    total_assessed: int
    total_not_assessed: int
    average_risk_score: float


class ActivityByType(BaseModel):
    type: str
    count: int


class ActiveClient(BaseModel):
    client_id: str
    client_name: str
    event_count: int


class ActivityStatistics(BaseModel):
    total_events: int
    by_type: list[ActivityByType]
    most_active_clients: list[ActiveClient]
    average_events_per_client: float
    period: StatisticsPeriod


class VatBucket(BaseModel):
    status: Literal["active", "not_registered", "invalid", "exempt", "not_validated"]
    count: int
    percentage: float


class VatStatistics(BaseModel):
    distribution: list[VatBucket]
    total_validated: int
    total_not_validated: int
    validation_rate: float


class TopClient(BaseModel):
    client_id: str
    client_name: str
    client_type: str
    metric_value: float
    metric_label: str


class TopClients(BaseModel):
    clients: list[TopClient]
    metric: str
    total: int


class DashboardGrowth(BaseModel):
    last_7_days: int
    last_30_days: int
    trend: Literal["up", "down", "stable"]


class DashboardAlerts(BaseModel):
    high_risk_clients: int
    expired_vat_validations: int
    incomplete_profiles: int


class DashboardQuickStats(BaseModel):
    avg_events_per_client: float
    avg_contacts_per_client: float
    top_tag: str | None


class DashboardSummary(BaseModel):
    overview: StatisticsOverview
    growth: DashboardGrowth
    alerts: DashboardAlerts
    quick_stats: DashboardQuickStats
