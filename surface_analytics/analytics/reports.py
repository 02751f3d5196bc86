"""
Report Service

Composes event store access with the aggregation engine into JSON-ready
report views for the dashboard:

- overview: KPI cards, classification and device mix, upload trend
- device / classification / geography breakdowns
- time patterns: hourly, weekday and period trend
- product performance and click rank distribution
- returning users (cohorts)
- shares & downloads
- recent high-engagement queries

A service instance is request scoped and holds no state between calls.
"""

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import structlog

from surface_analytics.analytics.actions import Share
from surface_analytics.analytics.aggregator import (
    Dimension,
    DimensionalAggregator,
    safe_rate,
)
from surface_analytics.analytics.classification import display_label
from surface_analytics.analytics.cohorts import CohortAnalyzer
from surface_analytics.analytics.filters import ReportFilters
from surface_analytics.analytics.periods import Granularity
from surface_analytics.config import Settings, get_settings
from surface_analytics.exceptions import ValidationError

logger = structlog.get_logger(__name__)

GEOGRAPHY_LEVELS = {"state": Dimension.STATE, "city": Dimension.CITY}

Window = Tuple[datetime, datetime]


def parse_granularity(value: Any) -> Granularity:
    try:
        return Granularity(str(value).strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown granularity: {value!r}", field="granularity") from e


def _window_dict(window: Window) -> Dict[str, str]:
    return {"start": window[0].isoformat(), "end": window[1].isoformat()}


def _mix(rows, total: int):
    return [
        {
            "key": row.key,
            "name": row.attributes.get("label", row.key),
            "uploads": row.uploads,
            "users": row.users,
            "percentage": round(safe_rate(row.uploads, total, 100), 2),
        }
        for row in rows
    ]


class ReportService:
    """
    Dashboard report views over an injected event store.

    Args:
        store: EventStore bound to the request's session
        catalog: ProductCatalog bound to the same session
        settings: Application settings (defaults to the cached settings)
        today: Fixed reference date for the default window
    """

    def __init__(
        self,
        store,
        catalog,
        settings: Optional[Settings] = None,
        today: Optional[date] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.today = today
        self.aggregator = DimensionalAggregator()
        self.cohorts = CohortAnalyzer()

    def window(self, filters: ReportFilters) -> Window:
        today = self.today or datetime.now(timezone.utc).date()
        return filters.window(today, self.settings.analytics.default_window_days)

    async def _windowed_events(self, filters: ReportFilters):
        window = self.window(filters)
        events = await self.store.fetch_events(filters, window=window)
        return events, window

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    async def overview(self, filters: ReportFilters) -> Dict[str, Any]:
        events, window = await self._windowed_events(filters)
        agg = self.aggregator

        totals = agg.totals(events, filters, window)
        classifications = agg.aggregate(events, Dimension.CLASSIFICATION, filters, window=window)
        devices = agg.aggregate(events, Dimension.DEVICE, filters, window=window)

        trend_days = self.settings.analytics.overview_trend_days
        trend_start = datetime.combine(
            window[1].date() - timedelta(days=max(trend_days - 1, 0)), time.min
        )
        trend_window = (max(window[0], trend_start), window[1])
        trend = agg.classification_trend(events, trend_window, filters)

        logger.info("Report computed", view="overview", events=len(events))
        return {
            "window": _window_dict(window),
            "kpis": {
                "totalUsers": totals.users,
                "totalUploads": totals.uploads,
                "avgUploadsPerUser": round(totals.avg_uploads_per_user, 2),
                "totalClicks": totals.clicks,
                "clickRate": round(totals.click_rate, 2),
                "avgClickedRank": round(totals.avg_display_rank, 2),
                "totalShares": totals.shares,
                "totalDownloads": totals.downloads,
                "shareDownloadRate": round(totals.share_download_rate, 2),
            },
            "classificationMix": _mix(classifications, totals.uploads),
            "deviceMix": _mix(devices, totals.uploads),
            "uploadTrend": trend,
        }

    async def device_breakdown(self, filters: ReportFilters) -> Dict[str, Any]:
        events, window = await self._windowed_events(filters)
        rows = self.aggregator.aggregate(events, Dimension.DEVICE, filters, window=window)
        logger.info("Report computed", view="devices", events=len(events))
        return {
            "window": _window_dict(window),
            "devices": [
                {**row.to_dict(), "avgUploadsPerUser": round(row.avg_uploads_per_user, 2)}
                for row in rows
            ],
        }

    async def classification_breakdown(self, filters: ReportFilters) -> Dict[str, Any]:
        events, window = await self._windowed_events(filters)
        rows = self.aggregator.aggregate(events, Dimension.CLASSIFICATION, filters, window=window)
        logger.info("Report computed", view="classifications", events=len(events))
        return {
            "window": _window_dict(window),
            "classifications": [
                {**row.to_dict(), "avgResultsPerUpload": round(row.avg_results_per_upload, 2)}
                for row in rows
            ],
        }

    async def geography(
        self,
        filters: ReportFilters,
        level: str = "state",
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        dimension = GEOGRAPHY_LEVELS.get(str(level).lower())
        if dimension is None:
            raise ValidationError(f"Unknown geography level: {level!r}", field="level")
        limit = limit or self.settings.analytics.geography_limit

        events, window = await self._windowed_events(filters)
        rows = self.aggregator.aggregate(events, dimension, filters, window=window)
        logger.info("Report computed", view="geography", level=dimension.value, events=len(events))
        return {
            "window": _window_dict(window),
            "level": dimension.value,
            "totalLocations": len(rows),
            "locations": [row.to_dict() for row in rows[:limit]],
        }

    async def time_patterns(
        self,
        filters: ReportFilters,
        granularity: Any = Granularity.DAY,
    ) -> Dict[str, Any]:
        granularity = parse_granularity(granularity)
        events, window = await self._windowed_events(filters)
        agg = self.aggregator

        trend = agg.aggregate(events, Dimension.PERIOD, filters, granularity, window)
        logger.info("Report computed", view="time_patterns", events=len(events))
        return {
            "window": _window_dict(window),
            "granularity": granularity.value,
            "hourly": agg.hourly_pattern(events, filters, window),
            "weekday": agg.weekday_pattern(events, filters, window),
            "trend": [row.to_dict() for row in trend],
        }

    async def product_performance(
        self,
        filters: ReportFilters,
        limit: Optional[int] = None,
        top_n: Optional[int] = None,
    ) -> Dict[str, Any]:
        limit = limit or self.settings.analytics.product_limit
        top_n = top_n or self.settings.analytics.top_locations

        events, window = await self._windowed_events(filters)

        # Catalog lookup needs the identifiers seen in the fetched events
        identifiers = set()
        for normalized in self.aggregator.prepare(events, filters, window):
            identifiers.update(normalized.event.search_results)
            identifiers.update(c.product_id for c in normalized.clicks if c.product_id)
        catalog = await self.catalog.lookup(identifiers)

        products = self.aggregator.aggregate_products(
            events, catalog, filters, window, top_n=top_n
        )
        impressions = sum(p.impressions for p in products)
        clicks = sum(p.clicks for p in products)

        logger.info(
            "Report computed",
            view="products",
            events=len(events),
            products=len(products),
            catalog_hits=len(catalog),
        )
        return {
            "window": _window_dict(window),
            "totals": {
                "products": len(products),
                "impressions": impressions,
                "clicks": clicks,
                "ctr": round(safe_rate(clicks, impressions, 100), 2),
            },
            "products": [p.to_dict() for p in products[:limit]],
            "rankDistribution": self.aggregator.rank_distribution(events, filters, window),
        }

    async def returning_users(
        self,
        filters: ReportFilters,
        granularity: Any = Granularity.WEEK,
    ) -> Dict[str, Any]:
        """
        Cohort view. One unbounded fetch supplies the global history; the
        windowed pass is derived from it in memory.
        """
        granularity = parse_granularity(granularity)
        window = self.window(filters)

        history = await self.store.fetch_events(filters.without_dates(), window=None)
        population = [n.event for n in self.aggregator.prepare(history, filters)]
        report = self.cohorts.analyze(population, granularity, window[0], window[1])

        logger.info(
            "Report computed",
            view="returning_users",
            history=len(population),
            new_users=report.new_users,
            returning_users=report.returning_users,
        )
        return {
            "window": _window_dict(window),
            "granularity": granularity.value,
            **report.to_dict(),
        }

    async def shares_downloads(self, filters: ReportFilters) -> Dict[str, Any]:
        events, window = await self._windowed_events(filters)
        agg = self.aggregator

        totals = agg.totals(events, filters, window)
        devices = agg.aggregate(events, Dimension.DEVICE, filters, window=window)
        channels = Counter(
            action.channel
            for normalized in agg.prepare(events, filters, window)
            for action in normalized.actions
            if isinstance(action, Share)
        )

        logger.info("Report computed", view="shares_downloads", events=len(events))
        return {
            "window": _window_dict(window),
            "totals": {
                "uploads": totals.uploads,
                "shares": totals.shares,
                "downloads": totals.downloads,
                "shareRate": round(totals.share_rate, 2),
                "shareDownloadRate": round(totals.share_download_rate, 2),
            },
            "channels": dict(sorted(channels.items())),
            "byDevice": [
                {
                    "device": row.key,
                    "uploads": row.uploads,
                    "shares": row.shares,
                    "downloads": row.downloads,
                    "shareDownloadRate": round(row.share_download_rate, 2),
                }
                for row in devices
            ],
        }

    async def recent_queries(
        self,
        filters: ReportFilters,
        limit: Optional[int] = None,
        min_actions: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Latest sessions with more than ``min_actions`` logged actions"""
        limit = limit or self.settings.analytics.recent_queries_limit
        if min_actions is None:
            min_actions = self.settings.analytics.recent_min_actions

        events, window = await self._windowed_events(filters)
        engaged = [
            n for n in self.aggregator.prepare(events, filters, window)
            if len(n.event.user_actions) > min_actions
        ]
        engaged.sort(key=lambda n: (n.event.created_at or datetime.min, n.event.session_id), reverse=True)

        logger.info("Report computed", view="recent_queries", events=len(events), engaged=len(engaged))
        return {
            "window": _window_dict(window),
            "total": len(engaged),
            "queries": [
                {
                    "sessionId": n.event.session_id,
                    "userId": n.event.user_id,
                    "createdAt": n.event.created_at.isoformat() if n.event.created_at else None,
                    "classification": display_label(n.classification),
                    "device": n.device.value,
                    "state": n.state,
                    "city": n.city,
                    "userImage": n.event.user_image,
                    "resultCount": len(n.event.search_results),
                    "actionCount": len(n.event.user_actions),
                    "clicks": len(n.clicks),
                    "shares": n.share_count,
                    "downloads": n.download_count,
                }
                for n in engaged[:limit]
            ],
        }
