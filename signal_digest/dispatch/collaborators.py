"""Synthesis and delivery collaborators for the dispatch pipeline.

Both are ABCs so the orchestrator never depends on a specific model vendor
or mail transport. Defaults:

- HeadlineSynthesizer: builds a "quick hits" briefing from headlines, no
  network calls
- WebhookDeliveryChannel: POSTs the briefing as JSON
- LogDeliveryChannel: logs the briefing (used when no transport is set up)
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime, timezone

import httpx
import structlog

from signal_digest.accounting.schemas import Briefing, TokenUsage
from signal_digest.dispatch.schemas import TrialContext
from signal_digest.errors import SynthesisFailure
from signal_digest.ingestion.aggregator import group_by_source_type
from signal_digest.ingestion.schemas import ContentItem

logger = structlog.get_logger(__name__)


class Synthesizer(ABC):
    """Turns aggregated items into a briefing."""

    @abstractmethod
    async def synthesize(self, items: Sequence[ContentItem], provider: str) -> Briefing:
        """Produce a briefing.

        Args:
            items: Aggregated items, newest first.
            provider: The subscriber's chosen model provider.

        Raises:
            SynthesisFailure: The briefing could not be produced.
        """


class DeliveryChannel(ABC):
    """Outbound transport for briefings."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'webhook', 'log')."""

    @abstractmethod
    async def deliver(
        self,
        email: str,
        briefing: Briefing,
        trial: TrialContext | None = None,
    ) -> bool:
        """Send a briefing.

        Returns:
            True if delivery succeeded, False otherwise.
        """


def _today_label(now: datetime) -> str:
    return f"{now:%A}, {now:%B} {now.day}"


class HeadlineSynthesizer(Synthesizer):
    """Headline-only briefing, usable without any model credentials.

    With ``sectioned=True`` the narrative is grouped by source type instead
    of one flat list of quick hits.
    """

    provider_name = "headline"
    model_name = "headline-digest"

    def __init__(
        self,
        item_limit: int = 25,
        top_stories: int = 8,
        quick_hits: int = 5,
        sectioned: bool = False,
    ) -> None:
        self._item_limit = item_limit
        self._top_stories = top_stories
        self._quick_hits = quick_hits
        self._sectioned = sectioned

    async def synthesize(self, items: Sequence[ContentItem], provider: str) -> Briefing:
        if not items:
            raise SynthesisFailure("Nothing to synthesize")

        top_items = list(items[: self._item_limit])
        now = datetime.now(timezone.utc)
        today = _today_label(now)

        if self._sectioned:
            body = self._sections(top_items)
        else:
            body = "\n".join(
                f"• **{item.source_name}**: {item.title}"
                for item in top_items[: self._quick_hits]
            )

        narrative = (
            f"Good morning! Here's your quick briefing for {today}.\n\n"
            f"{body}\n\n"
            "Dive into the links below for the full details. See you tomorrow!"
        )

        if provider != self.provider_name:
            logger.debug("Provider not configured, using headline digest", provider=provider)

        return Briefing(
            narrative=narrative,
            subject=f"Your Daily Digest - {today}",
            top_stories=top_items[: self._top_stories],
            generated_at=now,
            token_usage=TokenUsage(
                input=0,
                output=0,
                provider=self.provider_name,
                model=self.model_name,
            ),
        )

    def _sections(self, items: list[ContentItem]) -> str:
        blocks = []
        for source_type, grouped in group_by_source_type(items).items():
            lines = "\n".join(f"• {item.title} ({item.source_name})" for item in grouped)
            blocks.append(f"## {source_type.value.title()}\n{lines}")
        return "\n\n".join(blocks)


class WebhookDeliveryChannel(DeliveryChannel):
    """Delivers briefings as JSON POST to an HTTP endpoint.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    def _build_payload(
        self,
        email: str,
        briefing: Briefing,
        trial: TrialContext | None,
    ) -> dict:
        payload = {
            "to": email,
            "subject": briefing.subject,
            "briefing": briefing.model_dump(mode="json"),
            "trial": None,
        }
        if trial is not None:
            payload["trial"] = {
                "days_remaining": trial.days_remaining,
                "ends_at": trial.ends_at.isoformat(),
            }
        return payload

    async def deliver(
        self,
        email: str,
        briefing: Briefing,
        trial: TrialContext | None = None,
    ) -> bool:
        payload = self._build_payload(email, briefing, trial)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload, headers=self._headers)
                if resp.is_success:
                    return True
                logger.warning(
                    "Delivery webhook rejected briefing",
                    url=self._url,
                    status_code=resp.status_code,
                    email=email,
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Delivery webhook timed out", url=self._url, email=email)
            return False
        except httpx.HTTPError as e:
            logger.warning("Delivery webhook failed", url=self._url, email=email, error=str(e))
            return False


class LogDeliveryChannel(DeliveryChannel):
    """Writes the briefing subject to the log and reports success."""

    @property
    def name(self) -> str:
        return "log"

    async def deliver(
        self,
        email: str,
        briefing: Briefing,
        trial: TrialContext | None = None,
    ) -> bool:
        logger.info(
            "Briefing delivered to log",
            email=email,
            subject=briefing.subject,
            top_stories=len(briefing.top_stories),
            trial_days_remaining=trial.days_remaining if trial else None,
        )
        return True
