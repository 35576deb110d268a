"""
Delivery scheduler: a once-a-minute tick that dispatches due subscribers.

A subscriber is due when the current wall-clock minute in their timezone
equals their delivery time. ``force`` bypasses the time check; ``email``
restricts the tick to one subscriber. The tick only triggers dispatches;
the briefing work runs detached under the orchestrator's supervisor.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from signal_digest.config.settings import get_settings
from signal_digest.dispatch.orchestrator import DispatchOrchestrator, resolve_timezone
from signal_digest.dispatch.schemas import DispatchRequest
from signal_digest.subscribers.repository import SubscriberRepository
from signal_digest.subscribers.schemas import Subscriber, parse_clock

logger = structlog.get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass
class TickResult:
    """Per-subscriber outcome of one tick."""

    email: str
    status: str  # dispatched, skipped
    detail: str | None = None

    def to_dict(self) -> dict:
        return {"email": self.email, "status": self.status, "detail": self.detail}


def parse_delivery_time(value: str | None) -> tuple[int, int]:
    """``"HH:MM"`` -> (hour, minute); unset falls back to the configured default.

    Raises:
        ValueError: The value is not a 24h time of day
    """
    return parse_clock(value or get_settings().default_delivery_time)


def minute_distance(local_now: datetime, delivery_time: str | None) -> int:
    """Minutes between now and the delivery time on a 24h clock, wrapping at midnight."""
    hour, minute = parse_delivery_time(delivery_time)
    diff = abs((local_now.hour * 60 + local_now.minute) - (hour * 60 + minute))
    if diff > MINUTES_PER_DAY // 2:
        diff = MINUTES_PER_DAY - diff
    return diff


def is_due(subscriber: Subscriber, now: datetime) -> bool:
    """True when ``now`` falls in the subscriber's delivery minute."""
    local_now = now.astimezone(resolve_timezone(subscriber.preferences.timezone))
    return minute_distance(local_now, subscriber.preferences.delivery_time) == 0


class DeliveryScheduler:
    """
    Runs scheduler ticks against the subscriber store.

    Usage:
        scheduler = DeliveryScheduler(subscribers, orchestrator)
        results = await scheduler.tick()
    """

    def __init__(
        self,
        subscribers: SubscriberRepository,
        orchestrator: DispatchOrchestrator,
    ):
        self._subscribers = subscribers
        self._orchestrator = orchestrator

    async def tick(
        self,
        now: datetime | None = None,
        force: bool = False,
        email: str | None = None,
    ) -> list[TickResult]:
        """
        Dispatch every due subscriber.

        Args:
            now: Reference time (defaults to current UTC time)
            force: Dispatch regardless of delivery time
            email: Only consider this subscriber

        Returns:
            One TickResult per subscriber considered
        """
        now = now or datetime.now(timezone.utc)
        results: list[TickResult] = []

        if email:
            subscriber = await self._subscribers.get(email)
            candidates = [subscriber] if subscriber else []
        else:
            candidates = await self._subscribers.list_all()

        for subscriber in candidates:
            if not subscriber.sources:
                results.append(TickResult(subscriber.email, "skipped", "no_sources"))
                continue

            try:
                due = force or is_due(subscriber, now)
            except ValueError:
                logger.warning(
                    "Skipping subscriber with invalid delivery time",
                    email=subscriber.email,
                    delivery_time=subscriber.preferences.delivery_time,
                )
                results.append(TickResult(subscriber.email, "skipped", "invalid_delivery_time"))
                continue

            if not due:
                local_now = now.astimezone(resolve_timezone(subscriber.preferences.timezone))
                results.append(
                    TickResult(
                        subscriber.email,
                        "skipped",
                        f"wrong_time (now: {local_now:%H:%M}, "
                        f"target: {subscriber.preferences.delivery_time})",
                    )
                )
                continue

            ack = await self._orchestrator.dispatch(
                DispatchRequest(email=subscriber.email, force=force),
                now=now,
            )
            if ack.status == "accepted":
                results.append(TickResult(subscriber.email, "dispatched"))
            else:
                results.append(TickResult(subscriber.email, "skipped", ack.detail))

        dispatched = sum(1 for r in results if r.status == "dispatched")
        logger.info(
            "Scheduler tick complete",
            considered=len(results),
            dispatched=dispatched,
            force=force,
        )
        return results
