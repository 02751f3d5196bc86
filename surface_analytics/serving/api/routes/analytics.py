"""
Analytics API Endpoints

REST API for the surface analytics dashboard. Every endpoint accepts the
shared filter query string (startDate, endDate, classification, device,
state, city) plus view-specific options.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from surface_analytics.analytics.filters import ReportFilters
from surface_analytics.analytics.reports import ReportService
from surface_analytics.database.connection import get_db_dependency
from surface_analytics.database.store import EventStore, ProductCatalog

router = APIRouter()
logger = structlog.get_logger(__name__)


def get_filters(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    classification: Optional[str] = Query(None),
    device: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
) -> ReportFilters:
    """Validate the shared filter query string; raises ValidationError"""
    return ReportFilters.parse({
        "startDate": start_date,
        "endDate": end_date,
        "classification": classification,
        "device": device,
        "state": state,
        "city": city,
    })


async def get_report_service(
    db: AsyncSession = Depends(get_db_dependency),
) -> ReportService:
    """Request-scoped report service bound to the request's session"""
    return ReportService(EventStore(db), ProductCatalog(db))


@router.get("/overview")
async def get_overview(
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """KPI cards, classification and device mix, and upload trend."""
    return await service.overview(filters)


@router.get("/devices")
async def get_device_breakdown(
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Users, uploads, clicks and engagement rates per device category."""
    return await service.device_breakdown(filters)


@router.get("/classifications")
async def get_classification_breakdown(
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Per-classification summary."""
    return await service.classification_breakdown(filters)


@router.get("/geography")
async def get_geography(
    level: str = Query("state", description="state or city"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Locations ranked by active users."""
    return await service.geography(filters, level=level, limit=limit)


@router.get("/time-patterns")
async def get_time_patterns(
    granularity: str = Query("day", description="day, week or month"),
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Hourly and weekday upload patterns plus the period trend."""
    return await service.time_patterns(filters, granularity=granularity)


@router.get("/products")
async def get_product_performance(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    top_n: Optional[int] = Query(None, alias="topN", ge=1, le=20),
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Product impressions, clicks, CTR and click rank distribution."""
    return await service.product_performance(filters, limit=limit, top_n=top_n)


@router.get("/returning-users")
async def get_returning_users(
    granularity: str = Query("week", description="day, week or month"),
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """New vs. returning users, session frequency and return gap."""
    return await service.returning_users(filters, granularity=granularity)


@router.get("/shares-downloads")
async def get_shares_downloads(
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Share and download totals, channels and per-device rates."""
    return await service.shares_downloads(filters)


@router.get("/recent-queries")
async def get_recent_queries(
    limit: Optional[int] = Query(None, ge=1, le=500),
    min_actions: Optional[int] = Query(None, alias="minActions", ge=0),
    filters: ReportFilters = Depends(get_filters),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Latest high-engagement sessions."""
    return await service.recent_queries(filters, limit=limit, min_actions=min_actions)
