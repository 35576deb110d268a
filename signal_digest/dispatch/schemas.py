"""Request, acknowledgment and outcome types for dispatching."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from signal_digest.accounting.schemas import Briefing

AckStatus = Literal["skipped", "accepted"]

RunStatus = Literal["sent", "no_content", "dry_run", "failed"]


class DispatchRequest(BaseModel):
    """Trigger for one subscriber's dispatch."""

    email: str
    force: bool = False
    dry_run: bool = False


class DispatchAck(BaseModel):
    """Immediate answer to a dispatch trigger.

    ``detail`` carries the skip reason (``no_sources``, ``paused_indefinite``
    or ``paused_temporary``) and is None when accepted.
    """

    status: AckStatus
    detail: str | None = None

    @classmethod
    def skipped(cls, detail: str) -> "DispatchAck":
        return cls(status="skipped", detail=detail)

    @classmethod
    def accepted(cls) -> "DispatchAck":
        return cls(status="accepted")


@dataclass(frozen=True)
class TrialContext:
    """Countdown shown to trial-tier subscribers."""

    days_remaining: int
    ends_at: datetime


@dataclass
class DispatchOutcome:
    """Result of one detached dispatch run. Never seen by the trigger caller."""

    email: str
    status: RunStatus
    item_count: int = 0
    briefing: Briefing | None = None
    error: str | None = None
