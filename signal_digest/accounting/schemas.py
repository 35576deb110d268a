"""Schemas for briefings and the append-only usage and error logs.

Briefings are stored as JSON documents (``latest_briefings`` and the dated
``briefing_archive``); usage and error events map 1:1 to their tables.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from signal_digest.ingestion.schemas import ContentItem


class TokenUsage(BaseModel):
    """Token counts reported by the synthesis collaborator."""

    input: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)
    provider: str
    model: str


class Briefing(BaseModel):
    """A synthesized briefing as delivered to a subscriber."""

    narrative: str
    subject: str
    top_stories: list[ContentItem] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    token_usage: TokenUsage


@dataclass
class UsageEvent:
    """One successful dispatch: provider, model, tokens and derived cost."""

    email: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: Decimal
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "provider": self.provider,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": str(self.cost),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ErrorEvent:
    """One failed detached run."""

    email: str
    stage: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "stage": self.stage,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }
