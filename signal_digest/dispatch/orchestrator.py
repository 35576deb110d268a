"""
Dispatch orchestrator: trigger -> acknowledgment -> detached briefing run.

The synchronous phase only loads the subscriber and consults the
subscription gate, so the caller gets an answer quickly. Everything
expensive (aggregate, synthesize, deliver, record) runs afterwards as a
supervised task:

    dispatch()  ─ load subscriber ─ gate ─ spawn ─▶ "accepted"
                                             │
                                             ▼
    run()       aggregate ─ synthesize ─ deliver ─ stats ─ usage ─ archive

Any exception inside ``run`` is recorded as an ErrorEvent (stage
``dispatch``) and swallowed. There is no retry: the next scheduled or
forced dispatch is the recovery path.
"""

import math
import time
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from signal_digest.accounting.pricing import PricingTable
from signal_digest.accounting.repository import AccountingRepository
from signal_digest.accounting.schemas import ErrorEvent, UsageEvent
from signal_digest.config.settings import get_settings
from signal_digest.dispatch.collaborators import (
    DeliveryChannel,
    HeadlineSynthesizer,
    LogDeliveryChannel,
    Synthesizer,
    WebhookDeliveryChannel,
)
from signal_digest.dispatch.config import DispatchConfig
from signal_digest.dispatch.schemas import (
    DispatchAck,
    DispatchOutcome,
    DispatchRequest,
    TrialContext,
)
from signal_digest.dispatch.tasks import TaskSupervisor, get_supervisor
from signal_digest.errors import DeliveryFailure
from signal_digest.ingestion.aggregator import Aggregator
from signal_digest.ingestion.schemas import AggregationWindow
from signal_digest.observability.logging import log_context
from signal_digest.observability.metrics import get_metrics
from signal_digest.subscribers.gate import check_subscription
from signal_digest.subscribers.repository import SubscriberRepository
from signal_digest.subscribers.schemas import Subscriber

logger = structlog.get_logger(__name__)

DISPATCH_STAGE = "dispatch"


def resolve_timezone(name: str | None) -> ZoneInfo:
    """The named zone, or the configured default when missing or unknown."""
    default = get_settings().default_timezone
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using default", timezone=name, default=default)
        return ZoneInfo(default)


def local_date(now: datetime, tz_name: str | None) -> date:
    """Calendar date of ``now`` in the subscriber's timezone."""
    return now.astimezone(resolve_timezone(tz_name)).date()


def default_delivery_channel() -> DeliveryChannel:
    settings = get_settings()
    if settings.delivery_configured:
        return WebhookDeliveryChannel(
            settings.delivery_webhook_url,
            timeout=settings.delivery_timeout_seconds,
        )
    return LogDeliveryChannel()


class DispatchOrchestrator:
    """
    Runs one subscriber's dispatch end to end.

    Usage:
        orchestrator = DispatchOrchestrator(subscribers, accounting)
        ack = await orchestrator.dispatch(DispatchRequest(email="a@example.com"))
    """

    def __init__(
        self,
        subscribers: SubscriberRepository,
        accounting: AccountingRepository,
        aggregator: Aggregator | None = None,
        synthesizer: Synthesizer | None = None,
        delivery: DeliveryChannel | None = None,
        pricing: PricingTable | None = None,
        supervisor: TaskSupervisor | None = None,
        config: DispatchConfig | None = None,
    ):
        self._config = config or DispatchConfig()
        self._subscribers = subscribers
        self._accounting = accounting
        self._aggregator = aggregator or Aggregator()
        self._synthesizer = synthesizer or HeadlineSynthesizer(
            item_limit=self._config.briefing_item_limit,
            top_stories=self._config.top_stories,
            sectioned=self._config.sectioned_briefing,
        )
        self._delivery = delivery or default_delivery_channel()
        self._pricing = pricing or PricingTable()
        self._supervisor = supervisor or get_supervisor()

    async def admit(
        self,
        request: DispatchRequest,
        now: datetime | None = None,
    ) -> tuple[DispatchAck, Subscriber | None]:
        """
        Synchronous phase: load the subscriber and apply the gate.

        A pause that has run out is persisted back to ``active`` here.

        Returns:
            The acknowledgment and, when accepted, the loaded subscriber
        """
        now = now or datetime.now(timezone.utc)
        metrics = get_metrics()

        subscriber = await self._subscribers.get(request.email)
        if subscriber is None or not subscriber.sources:
            logger.info("Dispatch skipped", email=request.email, reason="no_sources")
            metrics.record_dispatch("skipped")
            return DispatchAck.skipped("no_sources"), None

        decision = check_subscription(subscriber.preferences, now)
        if not decision.should_send:
            logger.info(
                "Dispatch skipped",
                email=request.email,
                reason=decision.reason,
                until=decision.until.isoformat() if decision.until else None,
            )
            metrics.record_dispatch("skipped")
            return DispatchAck.skipped(decision.reason), None

        if decision.pause_expired:
            await self._subscribers.mark_active(subscriber.email)
            subscriber.preferences.subscription_status = "active"
            subscriber.preferences.paused_until = None

        metrics.record_dispatch("accepted")
        return DispatchAck.accepted(), subscriber

    async def dispatch(self, request: DispatchRequest, now: datetime | None = None) -> DispatchAck:
        """
        Acknowledge a trigger and schedule the detached run.

        Returns:
            ``skipped`` with a reason, or ``accepted`` once the run is scheduled
        """
        ack, subscriber = await self.admit(request, now)
        if subscriber is not None:
            self._supervisor.spawn(
                self.run(request, subscriber),
                name=f"dispatch:{subscriber.email}",
            )
        return ack

    async def run(self, request: DispatchRequest, subscriber: Subscriber) -> DispatchOutcome:
        """
        Detached phase. Never raises; failures become ErrorEvents.
        """
        started = time.perf_counter()
        log = logger.bind(force=request.force, dry_run=request.dry_run)

        with log_context(email=subscriber.email):
            try:
                outcome = await self._execute(request, subscriber)
            except Exception as e:
                message = str(e) or type(e).__name__
                log.error("Dispatch failed", error=message, error_type=type(e).__name__)
                await self._record_error(subscriber.email, message)
                outcome = DispatchOutcome(email=subscriber.email, status="failed", error=message)

            elapsed = time.perf_counter() - started
            get_metrics().record_dispatch(outcome.status, elapsed)
            log.info(
                "Dispatch finished",
                status=outcome.status,
                items=outcome.item_count,
                duration_ms=round(elapsed * 1000, 1),
            )
        return outcome

    async def _record_error(self, email: str, message: str) -> None:
        try:
            await self._accounting.record_error(
                ErrorEvent(email=email, stage=DISPATCH_STAGE, message=message)
            )
        except Exception as e:
            logger.error("Failed to record error event", email=email, error=str(e))

    async def _execute(self, request: DispatchRequest, subscriber: Subscriber) -> DispatchOutcome:
        email = subscriber.email
        lookback = (
            self._config.forced_lookback_days if request.force
            else self._config.scheduled_lookback_days
        )

        items = await self._aggregator.aggregate(
            subscriber.enabled_sources,
            AggregationWindow(lookback_days=lookback),
        )
        if not items:
            return DispatchOutcome(email=email, status="no_content")

        briefing = await self._synthesizer.synthesize(items, subscriber.preferences.llm_provider)

        if request.dry_run:
            return DispatchOutcome(
                email=email,
                status="dry_run",
                item_count=len(items),
                briefing=briefing,
            )

        now = datetime.now(timezone.utc)
        delivered = await self._delivery.deliver(email, briefing, self.trial_context(subscriber, now))
        if not delivered:
            raise DeliveryFailure(email, self._delivery.name)

        usage = briefing.token_usage
        await self._subscribers.increment_stats(
            email,
            input_tokens=usage.input,
            output_tokens=usage.output,
            briefings=1,
            at=now,
        )

        await self._accounting.record_usage(
            UsageEvent(
                email=email,
                provider=usage.provider,
                model=usage.model,
                input_tokens=usage.input,
                output_tokens=usage.output,
                cost=self._pricing.cost(usage.provider, usage.model, usage.input, usage.output),
                created_at=now,
            )
        )

        await self._accounting.save_briefing(
            email,
            local_date(now, subscriber.preferences.timezone),
            briefing,
        )

        return DispatchOutcome(
            email=email,
            status="sent",
            item_count=len(items),
            briefing=briefing,
        )

    def trial_context(self, subscriber: Subscriber, now: datetime) -> TrialContext | None:
        """Days left in the trial, for trial-tier subscribers only."""
        if subscriber.tier != "trial":
            return None

        ends_at = subscriber.created_at + timedelta(days=self._config.trial_length_days)
        remaining = (ends_at - now).total_seconds() / 86400
        return TrialContext(days_remaining=max(0, math.ceil(remaining)), ends_at=ends_at)
