"""
Content schemas shared by the resolver, fetcher and aggregator.

ContentItem is the one shape every feed is normalized to. Items are
ephemeral: they are built per aggregation run and never persisted
individually (briefings embed them as top stories).
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Known source families."""

    YOUTUBE = "youtube"
    PODCAST = "podcast"
    REDDIT = "reddit"
    SUBSTACK = "substack"
    MEDIUM = "medium"
    HACKERNEWS = "hackernews"
    GITHUB = "github"
    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    NEWSLETTER = "newsletter"
    BLOG = "blog"
    NEWS = "news"
    RSS = "rss"
    CUSTOM = "custom"


Confidence = Literal["high", "medium", "low"]


class ContentItem(BaseModel):
    """
    One normalized article, video or post pulled from a source.

    published_at is None when the feed carried a date that could not be
    parsed; the aggregator drops such items.
    """

    title: str
    description: str = ""
    link: str
    published_at: datetime | None = None
    source_name: str
    source_type: SourceType
    thumbnail: str = ""

    @property
    def dedup_key(self) -> str:
        """Case-folded, trimmed title."""
        return self.title.strip().casefold()


class AggregationWindow(BaseModel):
    """Recency cutoff applied during aggregation."""

    lookback_days: int = Field(default=1, ge=1)


class DetectedSource(BaseModel):
    """Result of classifying a raw URL into a canonical feed."""

    type: SourceType
    name: str
    feed_url: str
    original_url: str
    favicon: str = ""
    confidence: Confidence = "high"
