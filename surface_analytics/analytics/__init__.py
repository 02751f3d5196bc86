"""
Analytics Engine

Normalization, action parsing, cohort analysis and dimensional aggregation
over session events.
"""
from .actions import ActionLogParser, Click, Download, Ignored, Share, parse_action
from .aggregator import Dimension, DimensionalAggregator, DimensionStats, ProductStats
from .catalog import CatalogEntry, CatalogIndex
from .classification import Classification, ClassificationNormalizer, normalize_classification
from .cohorts import CohortAnalyzer, CohortReport
from .devices import DeviceClassifier, DeviceType, classify_device
from .events import SessionEvent, load_events
from .filters import ReportFilters
from .periods import Granularity, PeriodBucket, generate_buckets
from .reports import ReportService

__all__ = [
    "ActionLogParser",
    "Click",
    "Share",
    "Download",
    "Ignored",
    "parse_action",
    "Dimension",
    "DimensionalAggregator",
    "DimensionStats",
    "ProductStats",
    "CatalogEntry",
    "CatalogIndex",
    "Classification",
    "ClassificationNormalizer",
    "normalize_classification",
    "CohortAnalyzer",
    "CohortReport",
    "DeviceClassifier",
    "DeviceType",
    "classify_device",
    "SessionEvent",
    "load_events",
    "ReportFilters",
    "Granularity",
    "PeriodBucket",
    "generate_buckets",
    "ReportService",
]
