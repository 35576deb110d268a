"""
Aggregator: fan the fetcher out over a subscriber's sources and merge.

Pipeline per call:
1. fetch enabled sources concurrently (disabled sources are never fetched)
2. merge results in source order
3. keep items published strictly after ``now - lookback_days``; items with
   unparseable dates are dropped
4. stable sort newest first
5. drop later items whose case-folded, trimmed title was already seen

The result may be empty. That is a normal outcome, not an error.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from signal_digest.ingestion.feed_fetcher import FeedFetcher, FetchOutcome
from signal_digest.ingestion.schemas import AggregationWindow, ContentItem, SourceType
from signal_digest.observability.metrics import get_metrics
from signal_digest.subscribers.schemas import Source

logger = logging.getLogger(__name__)


def filter_window(
    items: Iterable[ContentItem],
    window: AggregationWindow,
    now: datetime,
) -> list[ContentItem]:
    """Items strictly newer than the window cutoff; undated items are dropped."""
    cutoff = now - timedelta(days=window.lookback_days)
    return [item for item in items if item.published_at is not None and item.published_at > cutoff]


def sort_newest_first(items: Iterable[ContentItem]) -> list[ContentItem]:
    """Stable sort by publish date, newest first. Undated items sink to the end."""
    minimum = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(items, key=lambda item: item.published_at or minimum, reverse=True)


def dedupe_by_title(items: Iterable[ContentItem]) -> list[ContentItem]:
    """Keep the first occurrence of each normalized title."""
    seen: set[str] = set()
    unique = []
    for item in items:
        key = item.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def merge_items(
    fetched: Iterable[Sequence[ContentItem]],
    window: AggregationWindow,
    now: datetime,
) -> list[ContentItem]:
    """Steps 2 to 5 of the pipeline over already-fetched per-source results."""
    merged = [item for items in fetched for item in items]
    return dedupe_by_title(sort_newest_first(filter_window(merged, window, now)))


def group_by_source_type(items: Iterable[ContentItem]) -> dict[SourceType, list[ContentItem]]:
    """Reshape into ``{source_type: items}`` keeping relative order within a type."""
    grouped: dict[SourceType, list[ContentItem]] = {}
    for item in items:
        grouped.setdefault(item.source_type, []).append(item)
    return grouped


class Aggregator:
    """
    Concurrent multi-source aggregation with isolated per-source failure.

    Usage:
        aggregator = Aggregator()
        items = await aggregator.aggregate(subscriber.sources, AggregationWindow(lookback_days=1))
    """

    def __init__(self, fetcher: FeedFetcher | None = None):
        self._fetcher = fetcher or FeedFetcher()

    async def fetch_all(self, sources: Sequence[Source]) -> list[FetchOutcome]:
        """Fetch every enabled source concurrently, in source order."""
        enabled = [source for source in sources if source.enabled]
        if not enabled:
            return []

        results = await asyncio.gather(
            *(
                self._fetcher.fetch_source(source.feed_endpoint, source.type, source.name)
                for source in enabled
            ),
            return_exceptions=True,
        )

        outcomes = []
        for source, result in zip(enabled, results):
            if isinstance(result, BaseException):
                # fetch_source contains its own failures; this is a last resort
                logger.error(f"Unexpected fetch error for {source.name}: {result}")
                outcomes.append(
                    FetchOutcome(endpoint=source.feed_endpoint, ok=False, error=str(result))
                )
            else:
                outcomes.append(result)
        return outcomes

    async def aggregate(
        self,
        sources: Sequence[Source],
        window: AggregationWindow,
        now: datetime | None = None,
    ) -> list[ContentItem]:
        """
        Aggregate a subscriber's sources into one newest-first, deduplicated list.

        Args:
            sources: The subscriber's sources; disabled ones are skipped
            window: Recency cutoff
            now: Reference time for the cutoff (defaults to current UTC time)

        Returns:
            Items sorted by ``published_at`` descending with unique titles
        """
        now = now or datetime.now(timezone.utc)
        outcomes = await self.fetch_all(sources)

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        items = merge_items((outcome.items for outcome in outcomes), window, now)

        logger.info(
            f"Aggregated {len(items)} items from {len(outcomes)} sources "
            f"({failed} failed, lookback {window.lookback_days}d)"
        )
        get_metrics().items_aggregated.inc(len(items))
        return items
