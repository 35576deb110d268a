"""Content ingestion: source resolution, feed fetching and aggregation."""

from signal_digest.ingestion.schemas import (
    AggregationWindow,
    ContentItem,
    DetectedSource,
    SourceType,
)

__all__ = [
    "AggregationWindow",
    "ContentItem",
    "DetectedSource",
    "SourceType",
]
