"""Tests for SubscriberRepository with mocked Database."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from signal_digest.ingestion.schemas import SourceType
from signal_digest.subscribers.repository import (
    SubscriberRepository,
    _record_to_source,
    _record_to_subscriber,
)
from signal_digest.subscribers.schemas import Preferences, Source, Subscriber


@pytest.fixture
def mock_db():
    db = AsyncMock()
    return db


@pytest.fixture
def repo(mock_db):
    return SubscriberRepository(mock_db)


def _make_subscriber_row(**overrides):
    """Create a mock asyncpg Record as a dict."""
    row = {
        "email": "reader@example.com",
        "delivery_time": "07:30",
        "timezone": "Europe/Berlin",
        "llm_provider": "headline",
        "subscription_status": "active",
        "paused_until": None,
        "tier": "trial",
        "input_tokens": 120,
        "output_tokens": 40,
        "total_briefings_sent": 3,
        "last_digest_at": None,
        "created_at": datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def _make_source_row(**overrides):
    row = {
        "id": "src-1",
        "email": "reader@example.com",
        "type": "reddit",
        "name": "r/python",
        "feed_endpoint": "https://www.reddit.com/r/python/.rss",
        "original_url": "https://www.reddit.com/r/python",
        "enabled": True,
        "favicon": "",
        "added_at": datetime(2026, 2, 21, 9, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


class TestRecordConversion:
    def test_source_conversion(self):
        source = _record_to_source(_make_source_row())

        assert source.id == "src-1"
        assert source.type == SourceType.REDDIT

    def test_unknown_source_type_becomes_custom(self):
        source = _record_to_source(_make_source_row(type="myspace"))

        assert source.type == SourceType.CUSTOM

    def test_subscriber_conversion(self):
        sub = _record_to_subscriber(_make_subscriber_row(), [])

        assert sub.preferences.delivery_time == "07:30"
        assert sub.preferences.timezone == "Europe/Berlin"
        assert sub.stats.input_tokens == 120
        assert sub.stats.total_briefings_sent == 3


class TestGet:
    @pytest.mark.asyncio
    async def test_get_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None

        assert await repo.get("nobody@example.com") is None
        mock_db.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_with_sources(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_subscriber_row()
        mock_db.fetch.return_value = [_make_source_row(), _make_source_row(id="src-2")]

        sub = await repo.get("reader@example.com")

        assert sub.email == "reader@example.com"
        assert [s.id for s in sub.sources] == ["src-1", "src-2"]

    @pytest.mark.asyncio
    async def test_list_all_groups_sources(self, repo, mock_db):
        mock_db.fetch.side_effect = [
            [_make_subscriber_row(), _make_subscriber_row(email="other@example.com")],
            [_make_source_row(), _make_source_row(id="src-9", email="other@example.com")],
        ]

        subs = await repo.list_all()

        assert [s.email for s in subs] == ["reader@example.com", "other@example.com"]
        assert [s.id for s in subs[1].sources] == ["src-9"]

    @pytest.mark.asyncio
    async def test_list_all_skips_unreadable_rows(self, repo, mock_db):
        mock_db.fetch.side_effect = [
            [_make_subscriber_row(email="broken@example.com", delivery_time="8:30am"), _make_subscriber_row()],
            [_make_source_row()],
        ]

        subs = await repo.list_all()

        assert [s.email for s in subs] == ["reader@example.com"]


class TestWrites:
    @pytest.mark.asyncio
    async def test_upsert_passes_preferences(self, repo, mock_db):
        sub = Subscriber(
            email="reader@example.com",
            preferences=Preferences(delivery_time="06:00", timezone="UTC"),
        )

        await repo.upsert(sub)

        args = mock_db.execute.call_args[0]
        assert args[1:4] == ("reader@example.com", "06:00", "UTC")
        assert args[7] == "trial"

    @pytest.mark.asyncio
    async def test_mark_active(self, repo, mock_db):
        await repo.mark_active("reader@example.com")

        sql = mock_db.execute.call_args[0][0]
        assert "subscription_status = 'active'" in sql
        assert "paused_until = NULL" in sql

    @pytest.mark.asyncio
    async def test_increment_stats_is_additive_sql(self, repo, mock_db):
        await repo.increment_stats("reader@example.com", input_tokens=10, output_tokens=5)

        sql, email, input_tokens, output_tokens, briefings, _ = mock_db.execute.call_args[0]
        assert "input_tokens = input_tokens + $2" in sql
        assert (email, input_tokens, output_tokens, briefings) == ("reader@example.com", 10, 5, 1)

    @pytest.mark.asyncio
    async def test_increment_stats_rejects_negative(self, repo, mock_db):
        with pytest.raises(ValueError):
            await repo.increment_stats("reader@example.com", input_tokens=-1, output_tokens=0)
        mock_db.execute.assert_not_called()


class TestSources:
    @pytest.mark.asyncio
    async def test_add_source_normalizes_endpoint(self, repo, mock_db):
        mock_db.fetchval.return_value = "src-1"
        source = Source(type=SourceType.RSS, name="Feed", feed_endpoint="HTTPS://Example.com/feed/")

        added = await repo.add_source("reader@example.com", source)

        assert added is True
        assert source.feed_endpoint == "https://example.com/feed"
        assert mock_db.fetchval.call_args[0][5] == "https://example.com/feed"

    @pytest.mark.asyncio
    async def test_add_duplicate_source(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        source = Source(type=SourceType.RSS, name="Feed", feed_endpoint="https://example.com/feed")

        assert await repo.add_source("reader@example.com", source) is False

    @pytest.mark.asyncio
    async def test_set_source_enabled(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 1"
        assert await repo.set_source_enabled("reader@example.com", "src-1", False) is True

        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.set_source_enabled("reader@example.com", "missing", False) is False

    @pytest.mark.asyncio
    async def test_remove_source(self, repo, mock_db):
        mock_db.execute.return_value = "DELETE 1"
        assert await repo.remove_source("reader@example.com", "src-1") is True

        mock_db.execute.return_value = "DELETE 0"
        assert await repo.remove_source("reader@example.com", "src-1") is False
