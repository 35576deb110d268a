"""
Request and response models for the signal-digest API.
"""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from signal_digest.accounting.schemas import Briefing
from signal_digest.discovery.recommendations import CuratedSource, StarterPack
from signal_digest.discovery.schemas import SearchResult
from signal_digest.ingestion.schemas import DetectedSource, SourceType


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Health models


class ComponentHealth(BaseModel):
    """Health status of an infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency in milliseconds")
    details: dict | None = Field(default=None, description="Extra diagnostics")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health",
    )
    in_flight: int = Field(
        default=0,
        description="Detached dispatch units currently running",
    )
    delivery_channel: str = Field(
        default="log",
        description="Active delivery transport",
    )
    version: str = Field(default="0.1.0", description="API version")


# Dispatch models


class DispatchTriggerRequest(BaseModel):
    """Request model for a dispatch trigger."""

    email: str = Field(..., min_length=3, description="Subscriber email")
    force: bool = Field(
        default=False,
        description="Bypass the delivery time and use the wider lookback window",
    )
    dry_run: bool = Field(
        default=False,
        description="Synthesize but do not deliver or record",
    )


class DispatchAckResponse(BaseModel):
    """Immediate acknowledgment of a dispatch trigger."""

    status: Literal["skipped", "accepted"]
    detail: str | None = None


class TickItem(BaseModel):
    """Outcome for one subscriber in a scheduler tick."""

    email: str
    status: str
    detail: str | None = None


class TickResponse(BaseModel):
    """Response model for a scheduler tick."""

    results: list[TickItem]
    dispatched: int
    total: int
    latency_ms: float


# Discovery models


class SearchResponse(BaseModel):
    """Response model for source discovery."""

    query: str
    type: str | None = None
    results: list[SearchResult]
    total: int
    latency_ms: float


class SampleItem(BaseModel):
    """One recent item from a detected feed."""

    title: str
    link: str
    published_at: dt.datetime | None = None


class DetectResponse(BaseModel):
    """Response model for URL classification.

    ``source.name`` is the feed's own title when the feed could be read.
    """

    detected: bool
    source: DetectedSource | None = None
    sample_items: list[SampleItem] = Field(default_factory=list)
    can_preview: bool = False


class FaviconRequest(BaseModel):
    """One URL or a batch of URLs to find artwork for."""

    url: str | None = None
    urls: list[str] | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _needs_a_url(self) -> "FaviconRequest":
        if not self.url and not self.urls:
            raise ValueError("Provide url or urls")
        return self

    @property
    def all_urls(self) -> list[str]:
        return list(self.urls) if self.urls else [self.url]


class FaviconResponse(BaseModel):
    """Artwork URL per requested URL."""

    favicons: dict[str, str]


# Source models


class SourceItem(BaseModel):
    """A subscriber's configured source."""

    id: str
    type: SourceType
    name: str
    feed_endpoint: str
    original_url: str = ""
    enabled: bool = True
    favicon: str = ""
    added_at: str


class AddSourceResponse(SourceItem):
    """The stored source; ``added`` is False when it was already there."""

    added: bool = True


class SourcesResponse(BaseModel):
    """Response model for listing a subscriber's sources."""

    email: str
    sources: list[SourceItem]
    total: int


class AddSourceRequest(BaseModel):
    """Add a source by URL. The URL is classified before it is stored."""

    url: str = Field(..., min_length=1, description="Feed, channel, profile or site URL")
    name: str | None = Field(default=None, description="Override the detected name")


class UpdateSourceRequest(BaseModel):
    """Toggle a source on or off."""

    enabled: bool


# Archive models


class ArchiveDatesResponse(BaseModel):
    """Dates for which a subscriber has an archived briefing."""

    email: str
    dates: list[dt.date]
    total: int


class BriefingResponse(BaseModel):
    """A stored briefing."""

    email: str
    date: dt.date | None = None
    briefing: Briefing


# Recommendation models


class StarterPacksResponse(BaseModel):
    """Every starter pack."""

    packs: list[StarterPack]


class RecommendationsResponse(BaseModel):
    """Starter packs for new subscribers, individual picks for everyone else."""

    mode: Literal["starter", "contextual"]
    packs: list[StarterPack] = Field(default_factory=list)
    sources: list[CuratedSource] = Field(default_factory=list)


# Activity models


class UsageEventItem(BaseModel):
    """One recorded dispatch with its token usage and cost."""

    id: int | None = None
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: str
    created_at: str


class ErrorEventItem(BaseModel):
    """One failed detached run."""

    id: int | None = None
    stage: str
    message: str
    created_at: str


class UsageResponse(BaseModel):
    email: str
    events: list[UsageEventItem]
    total: int


class ErrorsResponse(BaseModel):
    email: str
    events: list[ErrorEventItem]
    total: int
