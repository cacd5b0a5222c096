"""
Statistics API Endpoints.

Read-only organization statistics. Responses are cached server-side.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from crm.backend.core.cache import Cache
from crm.backend.core.dependencies import CurrentSession, DbSession
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.statistics import (
    ActivityParams,
    ActivityStatistics,
    ClientGrowth,
    DashboardSummary,
    RiskDistribution,
    StatisticsOverview,
    StatisticsPeriod,
    TagStatistics,
    TopClients,
    TopClientsParams,
    VatStatistics,
)
from crm.backend.services.statistics import StatisticsService

router = APIRouter()


@router.get("/overview", response_model=ApiResponse[StatisticsOverview], summary="Client overview")
async def get_overview(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    period: StatisticsPeriod = Query(default="month"),
) -> ApiResponse[StatisticsOverview]:
    result = await StatisticsService.for_request(db, cache, session).overview(period)
    return ApiResponse(data=result)


@router.get("/growth", response_model=ApiResponse[ClientGrowth], summary="Client growth over time")
async def get_growth(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    period: StatisticsPeriod = Query(default="month"),
    intervals: int = Query(default=12, ge=1, le=52),
) -> ApiResponse[ClientGrowth]:
    result = await StatisticsService.for_request(db, cache, session).growth(period, intervals)
    return ApiResponse(data=result)


@router.get("/tag-stats", response_model=ApiResponse[TagStatistics], summary="Client tag usage")
async def get_tag_stats(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    limit: int = Query(default=20, ge=1, le=50),
    include_archived: bool = Query(default=False),
) -> ApiResponse[TagStatistics]:
    result = await StatisticsService.for_request(db, cache, session).tag_stats(limit, include_archived)
    return ApiResponse(data=result)


@router.get("/risk", response_model=ApiResponse[RiskDistribution], summary="Risk level distribution")
async def get_risk(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    include_archived: bool = Query(default=False),
) -> ApiResponse[RiskDistribution]:
    result = await StatisticsService.for_request(db, cache, session).risk(include_archived)
    return ApiResponse(data=result)


@router.get("/activity", response_model=ApiResponse[ActivityStatistics], summary="Timeline activity")
async def get_activity(
    params: Annotated[ActivityParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[ActivityStatistics]:
    result = await StatisticsService.for_request(db, cache, session).activity(
        params.period, params.client_id
    )
    return ApiResponse(data=result)


@router.get("/vat", response_model=ApiResponse[VatStatistics], summary="VAT status distribution")
async def get_vat(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    include_archived: bool = Query(default=False),
) -> ApiResponse[VatStatistics]:
    result = await StatisticsService.for_request(db, cache, session).vat(include_archived)
    return ApiResponse(data=result)


@router.get("/top-clients", response_model=ApiResponse[TopClients], summary="Clients ranked by a metric")
async def get_top_clients(
    params: Annotated[TopClientsParams, Query()],
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
) -> ApiResponse[TopClients]:
    result = await StatisticsService.for_request(db, cache, session).top_clients(
        params.metric, params.limit, params.order
    )
    return ApiResponse(data=result)


@router.get("/dashboard", response_model=ApiResponse[DashboardSummary], summary="Dashboard summary")
async def get_dashboard(
    db: DbSession,
    cache: Cache,
    session: CurrentSession,
    period: StatisticsPeriod = Query(default="month"),
) -> ApiResponse[DashboardSummary]:
    result = await StatisticsService.for_request(db, cache, session).dashboard(period)
    return ApiResponse(data=result)
