"""Tests for the delivery scheduler tick."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from signal_digest.dispatch.schemas import DispatchAck
from signal_digest.dispatch.scheduler import (
    DeliveryScheduler,
    is_due,
    minute_distance,
    parse_delivery_time,
)
from signal_digest.subscribers.schemas import Preferences
from tests.conftest import make_subscriber

# 02:30 UTC is 08:00 in Asia/Kolkata
DUE = datetime(2026, 3, 2, 2, 30, tzinfo=timezone.utc)


def _subscriber(email="reader@example.com", delivery_time="08:00", tz="Asia/Kolkata", **kwargs):
    return make_subscriber(
        email=email,
        preferences=Preferences(delivery_time=delivery_time, timezone=tz),
        **kwargs,
    )


def _scheduler(subscribers_list, ack=None):
    subscribers = AsyncMock()
    subscribers.list_all.return_value = subscribers_list
    subscribers.get.side_effect = lambda email: next(
        (s for s in subscribers_list if s.email == email), None
    )
    orchestrator = AsyncMock()
    orchestrator.dispatch.return_value = ack or DispatchAck.accepted()
    return DeliveryScheduler(subscribers, orchestrator), orchestrator


class TestTimeHelpers:
    def test_parse_delivery_time(self):
        assert parse_delivery_time("07:45") == (7, 45)
        assert parse_delivery_time("9") == (9, 0)

    def test_parse_uses_default_when_missing(self):
        assert parse_delivery_time(None) == (8, 0)

    def test_parse_rejects_malformed_values(self):
        for value in ("8:30am", "24:00", "07:60", "noon", "7:5"):
            with pytest.raises(ValueError, match="Invalid delivery time"):
                parse_delivery_time(value)

    def test_minute_distance(self):
        local = datetime(2026, 3, 2, 8, 5)

        assert minute_distance(local, "08:00") == 5
        assert minute_distance(local, "08:05") == 0

    def test_minute_distance_wraps_midnight(self):
        local = datetime(2026, 3, 2, 23, 58)

        assert minute_distance(local, "00:03") == 5

    def test_is_due_in_subscriber_timezone(self):
        assert is_due(_subscriber(), DUE)
        assert not is_due(_subscriber(tz="UTC"), DUE)
        assert is_due(_subscriber(delivery_time="02:30", tz="UTC"), DUE)


class TestTick:
    @pytest.mark.asyncio
    async def test_due_subscriber_is_dispatched(self):
        subscriber = _subscriber()
        scheduler, orchestrator = _scheduler([subscriber])

        results = await scheduler.tick(now=DUE)

        assert [(r.email, r.status) for r in results] == [(subscriber.email, "dispatched")]
        request = orchestrator.dispatch.await_args.args[0]
        assert request.email == subscriber.email
        assert request.force is False

    @pytest.mark.asyncio
    async def test_wrong_time_is_skipped(self):
        scheduler, orchestrator = _scheduler([_subscriber(delivery_time="09:00")])

        results = await scheduler.tick(now=DUE)

        assert results[0].status == "skipped"
        assert results[0].detail == "wrong_time (now: 08:00, target: 09:00)"
        orchestrator.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_sources_is_skipped_even_when_forced(self):
        scheduler, orchestrator = _scheduler([_subscriber(sources=[])])

        results = await scheduler.tick(now=DUE, force=True)

        assert results[0].detail == "no_sources"
        orchestrator.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_ignores_delivery_time(self):
        scheduler, orchestrator = _scheduler([_subscriber(delivery_time="21:00")])

        results = await scheduler.tick(now=DUE, force=True)

        assert results[0].status == "dispatched"
        assert orchestrator.dispatch.await_args.args[0].force is True

    @pytest.mark.asyncio
    async def test_gate_skip_is_reported(self):
        scheduler, _ = _scheduler(
            [_subscriber()], ack=DispatchAck.skipped("paused_indefinite")
        )

        results = await scheduler.tick(now=DUE)

        assert results[0].status == "skipped"
        assert results[0].detail == "paused_indefinite"

    @pytest.mark.asyncio
    async def test_email_restricts_tick(self):
        a = _subscriber("a@example.com")
        b = _subscriber("b@example.com")
        scheduler, orchestrator = _scheduler([a, b])

        results = await scheduler.tick(now=DUE, email="b@example.com")

        assert [r.email for r in results] == ["b@example.com"]
        assert orchestrator.dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_email_yields_nothing(self):
        scheduler, orchestrator = _scheduler([_subscriber()])

        assert await scheduler.tick(now=DUE, email="ghost@example.com") == []
        orchestrator.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mixed_subscribers(self):
        scheduler, _ = _scheduler([
            _subscriber("due@example.com"),
            _subscriber("later@example.com", delivery_time="18:00"),
            _subscriber("empty@example.com", sources=[]),
        ])

        results = await scheduler.tick(now=DUE)

        assert [r.to_dict()["status"] for r in results] == ["dispatched", "skipped", "skipped"]

    @pytest.mark.asyncio
    async def test_bad_delivery_time_skips_only_that_subscriber(self):
        broken = _subscriber("broken@example.com")
        broken.preferences.delivery_time = "8:30am"
        scheduler, orchestrator = _scheduler([broken, _subscriber("due@example.com")])

        results = await scheduler.tick(now=DUE)

        assert [r.to_dict() for r in results] == [
            {"email": "broken@example.com", "status": "skipped", "detail": "invalid_delivery_time"},
            {"email": "due@example.com", "status": "dispatched", "detail": None},
        ]
        orchestrator.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_force_ignores_bad_delivery_time(self):
        broken = _subscriber()
        broken.preferences.delivery_time = "whenever"
        scheduler, _ = _scheduler([broken])

        results = await scheduler.tick(now=DUE, force=True)

        assert results[0].status == "dispatched"
