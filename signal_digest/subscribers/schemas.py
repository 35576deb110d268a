"""Data models for subscribers and their sources.

Maps to the ``subscribers`` and ``subscriber_sources`` tables. A
subscriber is identified by email; sources are owned by exactly one
subscriber and are unique by normalized feed endpoint within it.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from signal_digest.ingestion.schemas import SourceType

SubscriptionStatus = Literal["active", "paused"]

Tier = Literal["trial", "active", "expired"]

VALID_TIERS: frozenset[str] = frozenset({"trial", "active", "expired"})

GateAction = Literal["send", "skip"]

GateReason = Literal["paused_indefinite", "paused_temporary", "pause_expired"]

# "HH:MM" on a 24h clock; a bare hour means ":00"
_CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?$")


def parse_clock(value: str) -> tuple[int, int]:
    """``"07:45"`` -> (7, 45), ``"9"`` -> (9, 0).

    Raises:
        ValueError: Not a time of day on a 24h clock
    """
    m = _CLOCK_RE.match(value.strip())
    if not m:
        raise ValueError(f"Invalid delivery time {value!r}, expected HH:MM")
    hour, minute = int(m.group(1)), int(m.group(2) or 0)
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid delivery time {value!r}, expected HH:MM")
    return hour, minute


@dataclass
class Source:
    """A subscriber-configured feed.

    ``id`` is assigned once and never changes; ``enabled`` is the only
    field the subscriber toggles after creation.
    """

    type: SourceType
    name: str
    feed_endpoint: str
    original_url: str = ""
    enabled: bool = True
    favicon: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "feed_endpoint": self.feed_endpoint,
            "original_url": self.original_url,
            "enabled": self.enabled,
            "favicon": self.favicon,
            "added_at": self.added_at.isoformat(),
        }


@dataclass
class Preferences:
    """Delivery preferences and pause state."""

    delivery_time: str = "08:00"
    timezone: str = "Asia/Kolkata"
    llm_provider: str = "headline"
    subscription_status: SubscriptionStatus | None = "active"
    paused_until: datetime | None = None

    def __post_init__(self) -> None:
        if self.delivery_time:
            parse_clock(self.delivery_time)


@dataclass
class SubscriberStats:
    """Cumulative usage counters. Only ever incremented."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_briefings_sent: int = 0


@dataclass
class Subscriber:
    """A briefing recipient with preferences, sources and usage stats."""

    email: str
    preferences: Preferences = field(default_factory=Preferences)
    sources: list[Source] = field(default_factory=list)
    tier: Tier = "trial"
    stats: SubscriberStats = field(default_factory=SubscriberStats)
    last_digest_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.tier not in VALID_TIERS:
            raise ValueError(
                f"Invalid tier {self.tier!r}. Must be one of: {sorted(VALID_TIERS)}"
            )

    @property
    def enabled_sources(self) -> list[Source]:
        return [source for source in self.sources if source.enabled]


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the subscription gate.

    ``reason`` is set for every skip and for the ``pause_expired`` send,
    which obliges the caller to persist the subscriber as active again.
    """

    action: GateAction
    reason: GateReason | None = None
    until: datetime | None = None

    @property
    def should_send(self) -> bool:
        return self.action == "send"

    @property
    def pause_expired(self) -> bool:
        return self.reason == "pause_expired"
