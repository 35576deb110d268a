"""Tests for AccountingRepository with mocked Database."""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from signal_digest.accounting.repository import AccountingRepository, _briefing_from_column
from signal_digest.accounting.schemas import Briefing, ErrorEvent, TokenUsage, UsageEvent
from tests.conftest import make_item


def _make_briefing() -> Briefing:
    return Briefing(
        narrative="Good morning! Here's your quick briefing.",
        subject="Your Daily Digest - Monday, March 2",
        top_stories=[make_item("Chipmakers rally"), make_item("Rates on hold", hours_ago=3)],
        generated_at=datetime(2026, 3, 2, 2, 30, tzinfo=timezone.utc),
        token_usage=TokenUsage(input=0, output=0, provider="headline", model="headline-digest"),
    )


class _FakeArchiveDatabase:
    """Dict-backed stand-in for the JSONB archive tables."""

    def __init__(self):
        self.archive: dict[tuple[str, date], str] = {}
        self.latest: dict[str, str] = {}
        conn = AsyncMock()
        conn.execute.side_effect = self._execute
        self._conn = conn

    async def _execute(self, sql, *args):
        if "briefing_archive" in sql:
            email, archive_date, payload = args
            self.archive[(email, archive_date)] = payload
        else:
            email, payload = args
            self.latest[email] = payload
        return "INSERT 0 1"

    def transaction(self):
        cm = MagicMock()
        cm.__aenter__ = AsyncMock(return_value=self._conn)
        cm.__aexit__ = AsyncMock(return_value=False)
        return cm

    async def fetchval(self, sql, *args):
        if "briefing_archive" in sql:
            return self.archive.get((args[0], args[1]))
        return self.latest.get(args[0])

    async def fetch(self, sql, *args):
        dates = sorted((d for (e, d) in self.archive if e == args[0]), reverse=True)
        return [{"archive_date": d} for d in dates]


@pytest.fixture
def mock_db():
    return AsyncMock()


class TestEventLogs:
    @pytest.mark.asyncio
    async def test_record_usage_assigns_id(self, mock_db):
        mock_db.fetchval.return_value = 42
        repo = AccountingRepository(mock_db)
        event = UsageEvent(
            email="reader@example.com",
            provider="openai",
            model="gpt-4o-mini",
            input_tokens=100,
            output_tokens=50,
            cost=Decimal("0.000045"),
        )

        recorded = await repo.record_usage(event)

        assert recorded.id == 42
        args = mock_db.fetchval.call_args[0]
        assert args[1:7] == ("reader@example.com", "openai", "gpt-4o-mini", 100, 50, Decimal("0.000045"))

    @pytest.mark.asyncio
    async def test_record_error(self, mock_db):
        mock_db.fetchval.return_value = 7
        repo = AccountingRepository(mock_db)

        recorded = await repo.record_error(
            ErrorEvent(email="reader@example.com", stage="dispatch", message="boom")
        )

        assert recorded.id == 7
        assert mock_db.fetchval.call_args[0][1:4] == ("reader@example.com", "dispatch", "boom")

    @pytest.mark.asyncio
    async def test_list_errors(self, mock_db):
        mock_db.fetch.return_value = [{
            "id": 1,
            "email": "reader@example.com",
            "stage": "dispatch",
            "message": "boom",
            "created_at": datetime(2026, 3, 2, tzinfo=timezone.utc),
        }]
        repo = AccountingRepository(mock_db)

        events = await repo.list_errors("reader@example.com")

        assert events[0].message == "boom"
        assert events[0].to_dict()["stage"] == "dispatch"

    @pytest.mark.asyncio
    async def test_list_usage(self, mock_db):
        mock_db.fetch.return_value = [{
            "id": 7,
            "email": "reader@example.com",
            "provider": "gemini",
            "model": "gemini-2.5-flash",
            "input_tokens": 1000,
            "output_tokens": 200,
            "cost": Decimal("0.000800"),
            "created_at": datetime(2026, 3, 2, tzinfo=timezone.utc),
        }]
        repo = AccountingRepository(mock_db)

        events = await repo.list_usage("reader@example.com", limit=10)

        assert mock_db.fetch.call_args[0][1:] == ("reader@example.com", 10)
        assert events[0].cost == Decimal("0.000800")
        assert events[0].to_dict()["cost"] == "0.000800"


class TestArchive:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        db = _FakeArchiveDatabase()
        repo = AccountingRepository(db)
        briefing = _make_briefing()

        await repo.save_briefing("reader@example.com", date(2026, 3, 2), briefing)
        restored = await repo.get_archived_briefing("reader@example.com", date(2026, 3, 2))

        assert restored.narrative == briefing.narrative
        assert restored.subject == briefing.subject
        assert restored.top_stories == briefing.top_stories
        assert restored.model_dump_json() == briefing.model_dump_json()

    @pytest.mark.asyncio
    async def test_save_overwrites_same_date_and_latest(self):
        db = _FakeArchiveDatabase()
        repo = AccountingRepository(db)
        first = _make_briefing()
        second = first.model_copy(update={"subject": "Second run"})

        await repo.save_briefing("reader@example.com", date(2026, 3, 2), first)
        await repo.save_briefing("reader@example.com", date(2026, 3, 2), second)

        assert len(db.archive) == 1
        assert (await repo.get_archived_briefing("reader@example.com", date(2026, 3, 2))).subject == "Second run"
        assert (await repo.get_latest_briefing("reader@example.com")).subject == "Second run"

    @pytest.mark.asyncio
    async def test_dates_newest_first(self):
        db = _FakeArchiveDatabase()
        repo = AccountingRepository(db)
        for day in (1, 3, 2):
            await repo.save_briefing("reader@example.com", date(2026, 3, day), _make_briefing())

        dates = await repo.list_archive_dates("reader@example.com")

        assert dates == [date(2026, 3, 3), date(2026, 3, 2), date(2026, 3, 1)]

    @pytest.mark.asyncio
    async def test_missing_briefing_is_none(self):
        repo = AccountingRepository(_FakeArchiveDatabase())

        assert await repo.get_archived_briefing("reader@example.com", date(2026, 3, 2)) is None
        assert await repo.get_latest_briefing("reader@example.com") is None

    def test_briefing_from_decoded_jsonb(self):
        briefing = _make_briefing()

        restored = _briefing_from_column(briefing.model_dump(mode="json"))

        assert restored == briefing
