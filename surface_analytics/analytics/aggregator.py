"""
Dimensional Aggregation

Composes device classification, surface normalization and action parsing
into per-dimension roll-ups:
- Device, classification, state, city and time-bucket breakdowns
- Overview totals and derived rates
- Product impressions, clicks, CTR and top locations
- Rank distribution, hourly and weekday patterns

Events are flattened once into a Polars frame; independent grouping passes
(basic counts, click stats, share/download stats) are merged by key against
a zero-filled key frame so no dimension value is ever dropped.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from surface_analytics.analytics.actions import (
    RANK_BUCKETS,
    ActionLogParser,
    Click,
    Download,
    Ignored,
    ParsedAction,
    Share,
    rank_bucket,
)
from surface_analytics.analytics.catalog import CatalogIndex
from surface_analytics.analytics.classification import (
    Classification,
    ClassificationNormalizer,
    display_label,
)
from surface_analytics.analytics.devices import DeviceClassifier, DeviceType
from surface_analytics.analytics.events import SessionEvent
from surface_analytics.analytics.filters import ReportFilters
from surface_analytics.analytics.periods import Granularity, generate_buckets, period_key

logger = structlog.get_logger(__name__)

UNKNOWN_LOCATION = "Unknown"
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

Window = Tuple[datetime, datetime]


class Dimension(str, Enum):
    """Breakdown dimensions"""
    DEVICE = "device"
    CLASSIFICATION = "classification"
    STATE = "state"
    CITY = "city"
    PERIOD = "period"


GROUP_COLUMNS = {
    Dimension.DEVICE: "device",
    Dimension.CLASSIFICATION: "classification",
    Dimension.STATE: "state",
    Dimension.CITY: "city_key",
    Dimension.PERIOD: "period",
}

EVENT_FRAME_SCHEMA = {
    "session_id": pl.Utf8,
    "user_id": pl.Utf8,
    "created_at": pl.Datetime("us"),
    "device": pl.Utf8,
    "classification": pl.Utf8,
    "state": pl.Utf8,
    "city": pl.Utf8,
    "city_key": pl.Utf8,
    "period": pl.Utf8,
    "hour": pl.Int32,
    "weekday": pl.Int32,
    "result_count": pl.Int64,
    "action_count": pl.Int64,
    "clicks": pl.Int64,
    "total_rank": pl.Int64,
    "unranked_clicks": pl.Int64,
    "shares": pl.Int64,
    "downloads": pl.Int64,
}

IMPRESSION_SCHEMA = {"product": pl.Utf8, "rank": pl.Int64, "classification": pl.Utf8}
CLICK_SCHEMA = {
    "product": pl.Utf8,
    "rank": pl.Int64,
    "state": pl.Utf8,
    "city": pl.Utf8,
    "city_key": pl.Utf8,
}

COUNT_COLUMNS = ["users", "uploads", "results", "clicks", "total_rank", "shares", "downloads"]


def safe_rate(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """Ratio that is 0 instead of NaN/inf for an empty denominator"""
    if not denominator:
        return 0.0
    return numerator / denominator * scale


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class DimensionStats:
    """Counts and derived rates for one dimension value"""
    key: str
    users: int = 0
    uploads: int = 0
    results: int = 0
    clicks: int = 0
    total_rank: int = 0
    shares: int = 0
    downloads: int = 0
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def click_rate(self) -> float:
        return safe_rate(self.clicks, self.uploads, 100)

    @property
    def avg_rank(self) -> float:
        """Mean 0-based rank of clicked results"""
        return safe_rate(self.total_rank, self.clicks)

    @property
    def avg_display_rank(self) -> float:
        return self.avg_rank + 1 if self.clicks else 0.0

    @property
    def share_download_rate(self) -> float:
        return safe_rate(self.shares + self.downloads, self.uploads, 100)

    @property
    def share_rate(self) -> float:
        return safe_rate(self.shares, self.uploads, 100)

    @property
    def avg_uploads_per_user(self) -> float:
        return safe_rate(self.uploads, self.users)

    @property
    def avg_results_per_upload(self) -> float:
        return safe_rate(self.results, self.uploads)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            **self.attributes,
            "users": self.users,
            "uploads": self.uploads,
            "clicks": self.clicks,
            "totalRank": self.total_rank,
            "shares": self.shares,
            "downloads": self.downloads,
            "clickRate": round(self.click_rate, 2),
            "avgRank": round(self.avg_rank, 2),
            "avgDisplayRank": round(self.avg_display_rank, 2),
            "shareDownloadRate": round(self.share_download_rate, 2),
        }


@dataclass
class ProductStats:
    """Impression and click performance for one canonical product"""
    key: str
    name: str
    category: Optional[str] = None
    impressions: int = 0
    clicks: int = 0
    avg_impression_rank: float = 0.0
    avg_click_rank: float = 0.0
    classifications: List[str] = field(default_factory=list)
    top_states: List[Dict[str, Any]] = field(default_factory=list)
    top_cities: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ctr(self) -> float:
        return safe_rate(self.clicks, self.impressions, 100)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "productName": self.name,
            "category": self.category,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": round(self.ctr, 2),
            "avgImpressionRank": round(self.avg_impression_rank, 2),
            "avgClickRank": round(self.avg_click_rank, 2),
            "classifications": self.classifications,
            "topStates": self.top_states,
            "topCities": self.top_cities,
        }


@dataclass
class NormalizedEvent:
    """A session event with its canonical device, classification and actions"""
    event: SessionEvent
    device: DeviceType
    classification: Classification
    actions: List[ParsedAction]

    @property
    def clicks(self) -> List[Click]:
        return [a for a in self.actions if isinstance(a, Click)]

    @property
    def share_count(self) -> int:
        return sum(1 for a in self.actions if isinstance(a, Share))

    @property
    def download_count(self) -> int:
        return sum(1 for a in self.actions if isinstance(a, Download))

    @property
    def unranked_click_count(self) -> int:
        return sum(
            1 for a in self.actions
            if isinstance(a, Ignored) and a.reason == "unranked_click"
        )

    @property
    def state(self) -> str:
        return self.event.location.state or UNKNOWN_LOCATION

    @property
    def city(self) -> str:
        return self.event.location.city or UNKNOWN_LOCATION

    @property
    def city_key(self) -> str:
        return f"{self.city}, {self.state}"


# =============================================================================
# AGGREGATOR
# =============================================================================

class DimensionalAggregator:
    """
    Per-dimension roll-ups over session events.

    Example:
        aggregator = DimensionalAggregator()
        rows = aggregator.aggregate(events, Dimension.DEVICE, filters)
        [row.to_dict() for row in rows]
    """

    def __init__(
        self,
        device_classifier: Optional[DeviceClassifier] = None,
        normalizer: Optional[ClassificationNormalizer] = None,
        parser: Optional[ActionLogParser] = None,
    ):
        self.device_classifier = device_classifier or DeviceClassifier()
        self.normalizer = normalizer or ClassificationNormalizer()
        self.parser = parser or ActionLogParser()

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    def normalize(self, event: SessionEvent) -> NormalizedEvent:
        return NormalizedEvent(
            event=event,
            device=self.device_classifier.classify(event.device_type, event.device_info),
            classification=self.normalizer.normalize(event.classification),
            actions=self.parser.parse_entries(event.user_actions),
        )

    def prepare(
        self,
        events: Iterable[SessionEvent],
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
    ) -> List[NormalizedEvent]:
        """
        Normalize events and apply filters.

        Events without a user id are dropped from every metric. With a
        window, events without a timestamp cannot be placed and are dropped.
        """
        prepared = []
        without_user = 0
        for event in events:
            if not event.has_user:
                without_user += 1
                continue
            if window is not None:
                if event.created_at is None or not (window[0] <= event.created_at <= window[1]):
                    continue
            normalized = self.normalize(event)
            if filters is not None and not filters.matches(
                event, normalized.device, normalized.classification
            ):
                continue
            prepared.append(normalized)

        if without_user:
            logger.debug("Excluded events without user id", count=without_user)
        return prepared

    def build_frame(
        self,
        prepared: Sequence[NormalizedEvent],
        granularity: Granularity = Granularity.DAY,
    ) -> pl.DataFrame:
        """Flatten normalized events into one row per event"""
        rows = [self._frame_row(n, granularity) for n in prepared]
        return pl.DataFrame(rows, schema=EVENT_FRAME_SCHEMA)

    @staticmethod
    def _frame_row(normalized: NormalizedEvent, granularity: Granularity) -> Dict[str, Any]:
        event = normalized.event
        created_at = event.created_at
        clicks = normalized.clicks
        return {
            "session_id": event.session_id,
            "user_id": event.user_id,
            "created_at": created_at,
            "device": normalized.device.value,
            "classification": normalized.classification.value,
            "state": normalized.state,
            "city": normalized.city,
            "city_key": normalized.city_key,
            "period": period_key(created_at, granularity) if created_at else None,
            "hour": created_at.hour if created_at else None,
            "weekday": created_at.weekday() if created_at else None,
            "result_count": len(event.search_results),
            "action_count": len(event.user_actions),
            "clicks": len(clicks),
            "total_rank": sum(click.rank for click in clicks),
            "unranked_clicks": normalized.unranked_click_count,
            "shares": normalized.share_count,
            "downloads": normalized.download_count,
        }

    # -------------------------------------------------------------------------
    # Grouping passes
    # -------------------------------------------------------------------------

    @staticmethod
    def _basic_counts(frame: pl.DataFrame, column: str) -> pl.DataFrame:
        return frame.group_by(column).agg(
            pl.col("user_id").n_unique().alias("users"),
            pl.len().alias("uploads"),
            pl.col("result_count").sum().alias("results"),
        ).rename({column: "key"})

    @staticmethod
    def _click_stats(frame: pl.DataFrame, column: str) -> pl.DataFrame:
        return frame.group_by(column).agg(
            pl.col("clicks").sum(),
            pl.col("total_rank").sum(),
        ).rename({column: "key"})

    @staticmethod
    def _share_download_stats(frame: pl.DataFrame, column: str) -> pl.DataFrame:
        return frame.group_by(column).agg(
            pl.col("shares").sum(),
            pl.col("downloads").sum(),
        ).rename({column: "key"})

    def _merge_passes(
        self,
        frame: pl.DataFrame,
        column: str,
        universe: Sequence[str] = (),
    ) -> pl.DataFrame:
        """
        Run the independent grouping passes and merge them by key.

        Keys come from ``universe`` (zero-filled, in that order) followed by
        any other observed values; missing counts default to 0.
        """
        grouped = frame.filter(pl.col(column).is_not_null())

        known = set(universe)
        observed = [
            k for k in grouped.get_column(column).unique(maintain_order=True).to_list()
            if k not in known
        ]
        keys = list(universe) + observed
        key_frame = pl.DataFrame(
            {"key": keys, "order": list(range(len(keys)))},
            schema={"key": pl.Utf8, "order": pl.Int64},
        )

        merged = key_frame
        for part in (
            self._basic_counts(grouped, column),
            self._click_stats(grouped, column),
            self._share_download_stats(grouped, column),
        ):
            merged = merged.join(part, on="key", how="left")

        return merged.with_columns(pl.col(COUNT_COLUMNS).fill_null(0)).sort("order")

    @staticmethod
    def _rows_to_stats(merged: pl.DataFrame) -> List[DimensionStats]:
        return [
            DimensionStats(
                key=row["key"],
                users=int(row["users"]),
                uploads=int(row["uploads"]),
                results=int(row["results"]),
                clicks=int(row["clicks"]),
                total_rank=int(row["total_rank"]),
                shares=int(row["shares"]),
                downloads=int(row["downloads"]),
            )
            for row in merged.iter_rows(named=True)
        ]

    # -------------------------------------------------------------------------
    # Dimension views
    # -------------------------------------------------------------------------

    def aggregate(
        self,
        events: Iterable[SessionEvent],
        dimension: Dimension,
        filters: Optional[ReportFilters] = None,
        granularity: Granularity = Granularity.DAY,
        window: Optional[Window] = None,
    ) -> List[DimensionStats]:
        """
        Aggregate events by one dimension.

        Args:
            events: Session events (already date-bounded by the store, or
                bounded here through ``window``)
            dimension: Breakdown dimension
            filters: Classification/device/location filters
            granularity: Bucket size for the period dimension
            window: Inclusive report window; also defines the bucket range

        Returns:
            One DimensionStats per dimension value, zero-filled for known
            values without events
        """
        dimension = Dimension(dimension)
        granularity = Granularity(granularity)
        prepared = self.prepare(events, filters, window)
        frame = self.build_frame(prepared, granularity)

        buckets = []
        if dimension == Dimension.PERIOD:
            buckets = self._period_buckets(frame, granularity, window)
            universe = [bucket.key for bucket in buckets]
        elif dimension == Dimension.DEVICE:
            universe = [device.value for device in DeviceType]
        elif dimension == Dimension.CLASSIFICATION:
            universe = [classification.value for classification in Classification]
        else:
            universe = []

        merged = self._merge_passes(frame, GROUP_COLUMNS[dimension], universe)
        stats = self._rows_to_stats(merged)

        if dimension == Dimension.CLASSIFICATION:
            for row in stats:
                row.attributes["label"] = display_label(Classification(row.key))
        elif dimension == Dimension.PERIOD:
            by_key = {bucket.key: bucket for bucket in buckets}
            for row in stats:
                bucket = by_key[row.key]
                row.attributes["start"] = bucket.start.isoformat()
                row.attributes["end"] = bucket.end.isoformat()
        elif dimension == Dimension.CITY:
            locations = {
                r["city_key"]: (r["state"], r["city"])
                for r in frame.select(["city_key", "state", "city"]).unique().iter_rows(named=True)
            }
            for row in stats:
                state, city = locations[row.key]
                row.attributes["state"] = state
                row.attributes["city"] = city

        if dimension in (Dimension.STATE, Dimension.CITY):
            stats.sort(key=lambda s: (-s.users, -s.uploads, s.key))

        logger.debug(
            "Aggregated events",
            dimension=dimension.value,
            events=frame.height,
            groups=len(stats),
        )
        return stats

    @staticmethod
    def _period_buckets(frame: pl.DataFrame, granularity: Granularity, window: Optional[Window]):
        if window is not None:
            return generate_buckets(window[0], window[1], granularity)
        first = frame.get_column("created_at").min()
        last = frame.get_column("created_at").max()
        if first is None or last is None:
            return []
        return generate_buckets(first, last, granularity)

    def totals(
        self,
        events: Iterable[SessionEvent],
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
    ) -> DimensionStats:
        """Single overall row for KPI cards"""
        frame = self.build_frame(self.prepare(events, filters, window))
        frame = frame.with_columns(pl.lit("all").alias("scope"))
        return self._rows_to_stats(self._merge_passes(frame, "scope", ["all"]))[0]

    def classification_trend(
        self,
        events: Iterable[SessionEvent],
        window: Window,
        filters: Optional[ReportFilters] = None,
        granularity: Granularity = Granularity.DAY,
    ) -> List[Dict[str, Any]]:
        """Uploads per period split by classification, zero-filled per bucket"""
        frame = self.build_frame(self.prepare(events, filters, window), granularity)
        counts = (
            frame.filter(pl.col("period").is_not_null())
            .group_by(["period", "classification"])
            .agg(pl.len().alias("uploads"))
        )
        lookup = {
            (row["period"], row["classification"]): row["uploads"]
            for row in counts.iter_rows(named=True)
        }
        return [
            {
                "period": bucket.key,
                **{c.value: int(lookup.get((bucket.key, c.value), 0)) for c in Classification},
            }
            for bucket in generate_buckets(window[0], window[1], granularity)
        ]

    # -------------------------------------------------------------------------
    # Time patterns and rank distribution
    # -------------------------------------------------------------------------

    def _uploads_by(self, frame: pl.DataFrame, column: str) -> Dict[int, int]:
        counts = (
            frame.filter(pl.col(column).is_not_null())
            .group_by(column)
            .agg(pl.len().alias("uploads"))
        )
        return {row[column]: int(row["uploads"]) for row in counts.iter_rows(named=True)}

    def hourly_pattern(
        self,
        events: Iterable[SessionEvent],
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
    ) -> List[Dict[str, int]]:
        """Uploads per hour of day (0-23)"""
        frame = self.build_frame(self.prepare(events, filters, window))
        counts = self._uploads_by(frame, "hour")
        return [{"hour": hour, "uploads": counts.get(hour, 0)} for hour in range(24)]

    def weekday_pattern(
        self,
        events: Iterable[SessionEvent],
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
    ) -> List[Dict[str, Any]]:
        """Uploads per day of week, Monday first"""
        frame = self.build_frame(self.prepare(events, filters, window))
        counts = self._uploads_by(frame, "weekday")
        return [
            {"weekday": index, "day": label, "uploads": counts.get(index, 0)}
            for index, label in enumerate(WEEKDAY_LABELS)
        ]

    def rank_distribution(
        self,
        events: Iterable[SessionEvent],
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
    ) -> List[Dict[str, Any]]:
        """Clicks per display-rank bucket (Rank 1, 2, 3, 4+)"""
        counts = Counter(
            rank_bucket(click.rank)
            for normalized in self.prepare(events, filters, window)
            for click in normalized.clicks
        )
        total = sum(counts.values())
        return [
            {
                "name": bucket,
                "value": counts.get(bucket, 0),
                "percentage": round(safe_rate(counts.get(bucket, 0), total, 100), 2),
            }
            for bucket in RANK_BUCKETS
        ]

    # -------------------------------------------------------------------------
    # Product performance
    # -------------------------------------------------------------------------

    def aggregate_products(
        self,
        events: Iterable[SessionEvent],
        catalog: Optional[CatalogIndex] = None,
        filters: Optional[ReportFilters] = None,
        window: Optional[Window] = None,
        top_n: int = 3,
        limit: Optional[int] = None,
    ) -> List[ProductStats]:
        """
        Impressions, clicks and CTR per canonical product.

        Impressions come from each event's ``search_results`` position;
        clicks from parsed Click actions. Both identifier schemes resolve
        through ``catalog`` so they merge on one key.
        """
        catalog = catalog or CatalogIndex()
        prepared = self.prepare(events, filters, window)

        impression_rows = []
        click_rows = []
        for normalized in prepared:
            for position, reference in enumerate(normalized.event.search_results):
                impression_rows.append({
                    "product": catalog.resolve(reference),
                    "rank": position,
                    "classification": normalized.classification.value,
                })
            for click in normalized.clicks:
                if click.product_id is None:
                    continue
                click_rows.append({
                    "product": catalog.resolve(click.product_id),
                    "rank": click.rank,
                    "state": normalized.state,
                    "city": normalized.city,
                    "city_key": normalized.city_key,
                })

        impression_frame = pl.DataFrame(impression_rows, schema=IMPRESSION_SCHEMA)
        click_frame = pl.DataFrame(click_rows, schema=CLICK_SCHEMA)

        impressions = impression_frame.group_by("product").agg(
            pl.len().alias("impressions"),
            pl.col("rank").mean().alias("avg_impression_rank"),
            pl.col("classification").unique().sort().alias("classifications"),
        )
        clicks = click_frame.group_by("product").agg(
            pl.len().alias("clicks"),
            pl.col("rank").mean().alias("avg_click_rank"),
        )

        merged = (
            impressions.join(clicks, on="product", how="full", coalesce=True)
            .with_columns(
                pl.col("impressions").fill_null(0),
                pl.col("clicks").fill_null(0),
                pl.col("avg_impression_rank").fill_null(0.0),
                pl.col("avg_click_rank").fill_null(0.0),
            )
            .sort(["impressions", "clicks", "product"], descending=[True, True, False])
        )
        if limit:
            merged = merged.head(limit)

        top_states = self._top_locations(click_frame, "state", "state", top_n)
        top_cities = self._top_locations(click_frame, "city", "city_key", top_n)

        products = []
        for row in merged.iter_rows(named=True):
            key = row["product"]
            entry = catalog.describe(key)
            products.append(ProductStats(
                key=key,
                name=(entry.name if entry and entry.name else key),
                category=entry.category if entry else None,
                impressions=int(row["impressions"]),
                clicks=int(row["clicks"]),
                avg_impression_rank=float(row["avg_impression_rank"]),
                avg_click_rank=float(row["avg_click_rank"]),
                classifications=list(row["classifications"] or []),
                top_states=top_states.get(key, []),
                top_cities=top_cities.get(key, []),
            ))

        logger.debug(
            "Aggregated product performance",
            products=len(products),
            impressions=impression_frame.height,
            clicks=click_frame.height,
        )
        return products

    @staticmethod
    def _top_locations(
        click_frame: pl.DataFrame,
        filter_column: str,
        label_column: str,
        top_n: int,
    ) -> Dict[str, List[Dict[str, Any]]]:
        ranked = (
            click_frame.filter(pl.col(filter_column) != UNKNOWN_LOCATION)
            .group_by(["product", label_column])
            .agg(pl.len().alias("clicks"))
            .sort(["product", "clicks", label_column], descending=[False, True, False])
        )
        top: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for row in ranked.iter_rows(named=True):
            bucket = top[row["product"]]
            if len(bucket) < top_n:
                bucket.append({"name": row[label_column], "clicks": int(row["clicks"])})
        return top
