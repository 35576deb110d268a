"""Database repository for the subscribers and subscriber_sources tables."""

from datetime import datetime, timezone

import structlog

from signal_digest.ingestion.resolver import normalize_feed_endpoint
from signal_digest.ingestion.schemas import SourceType
from signal_digest.storage.database import Database
from signal_digest.subscribers.schemas import (
    Preferences,
    Source,
    Subscriber,
    SubscriberStats,
)

logger = structlog.get_logger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS subscribers (
    email                TEXT PRIMARY KEY,
    delivery_time        TEXT NOT NULL DEFAULT '08:00',
    timezone             TEXT NOT NULL DEFAULT 'Asia/Kolkata',
    llm_provider         TEXT NOT NULL DEFAULT 'headline',
    subscription_status  TEXT,
    paused_until         TIMESTAMPTZ,
    tier                 TEXT NOT NULL DEFAULT 'trial',
    input_tokens         BIGINT NOT NULL DEFAULT 0,
    output_tokens        BIGINT NOT NULL DEFAULT 0,
    total_briefings_sent BIGINT NOT NULL DEFAULT 0,
    last_digest_at       TIMESTAMPTZ,
    created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS subscriber_sources (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL REFERENCES subscribers(email) ON DELETE CASCADE,
    type          TEXT NOT NULL,
    name          TEXT NOT NULL,
    feed_endpoint TEXT NOT NULL,
    original_url  TEXT NOT NULL DEFAULT '',
    enabled       BOOLEAN NOT NULL DEFAULT TRUE,
    favicon       TEXT NOT NULL DEFAULT '',
    added_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (email, feed_endpoint)
);

CREATE INDEX IF NOT EXISTS idx_subscriber_sources_email
    ON subscriber_sources(email);
"""

_UPSERT_SUBSCRIBER_SQL = """
INSERT INTO subscribers (
    email, delivery_time, timezone, llm_provider,
    subscription_status, paused_until, tier, created_at
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
ON CONFLICT (email) DO UPDATE SET
    delivery_time = EXCLUDED.delivery_time,
    timezone = EXCLUDED.timezone,
    llm_provider = EXCLUDED.llm_provider,
    subscription_status = EXCLUDED.subscription_status,
    paused_until = EXCLUDED.paused_until,
    tier = EXCLUDED.tier
"""

# Counters are incremented in SQL so concurrent runs add rather than overwrite
_INCREMENT_STATS_SQL = """
UPDATE subscribers SET
    input_tokens = input_tokens + $2,
    output_tokens = output_tokens + $3,
    total_briefings_sent = total_briefings_sent + $4,
    last_digest_at = $5
WHERE email = $1
"""

_INSERT_SOURCE_SQL = """
INSERT INTO subscriber_sources (
    id, email, type, name, feed_endpoint, original_url, enabled, favicon, added_at
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
ON CONFLICT (email, feed_endpoint) DO NOTHING
RETURNING id
"""

_SOURCES_FOR_SQL = """
SELECT * FROM subscriber_sources
WHERE email = $1
ORDER BY added_at, id
"""


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    try:
        source_type = SourceType(record["type"])
    except ValueError:
        source_type = SourceType.CUSTOM

    return Source(
        id=record["id"],
        type=source_type,
        name=record["name"],
        feed_endpoint=record["feed_endpoint"],
        original_url=record["original_url"],
        enabled=record["enabled"],
        favicon=record["favicon"],
        added_at=record["added_at"],
    )


def _record_to_subscriber(record, sources: list[Source]) -> Subscriber:
    """Convert an asyncpg Record plus its sources to a Subscriber."""
    return Subscriber(
        email=record["email"],
        preferences=Preferences(
            delivery_time=record["delivery_time"],
            timezone=record["timezone"],
            llm_provider=record["llm_provider"],
            subscription_status=record["subscription_status"],
            paused_until=record["paused_until"],
        ),
        sources=sources,
        tier=record["tier"],
        stats=SubscriberStats(
            input_tokens=record["input_tokens"],
            output_tokens=record["output_tokens"],
            total_briefings_sent=record["total_briefings_sent"],
        ),
        last_digest_at=record["last_digest_at"],
        created_at=record["created_at"],
    )


class SubscriberRepository:
    """CRUD operations for subscribers and their sources."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create the subscriber tables and indexes (idempotent)."""
        await self._db.apply_schema("subscribers", _CREATE_TABLES_SQL)

    async def get(self, email: str) -> Subscriber | None:
        """Load a subscriber with all sources, or None if absent."""
        row = await self._db.fetchrow("SELECT * FROM subscribers WHERE email = $1", email)
        if row is None:
            return None
        source_rows = await self._db.fetch(_SOURCES_FOR_SQL, email)
        return _record_to_subscriber(row, [_record_to_source(r) for r in source_rows])

    async def list_all(self) -> list[Subscriber]:
        """Every subscriber with sources, ordered by email. Rows that fail validation are skipped."""
        rows = await self._db.fetch("SELECT * FROM subscribers ORDER BY email")
        source_rows = await self._db.fetch(
            "SELECT * FROM subscriber_sources ORDER BY email, added_at, id"
        )

        by_email: dict[str, list[Source]] = {}
        for r in source_rows:
            by_email.setdefault(r["email"], []).append(_record_to_source(r))

        subscribers = []
        for row in rows:
            try:
                subscribers.append(_record_to_subscriber(row, by_email.get(row["email"], [])))
            except ValueError as e:
                logger.warning("Skipping unreadable subscriber row", email=row["email"], error=str(e))
        return subscribers

    async def upsert(self, subscriber: Subscriber) -> None:
        """Insert or update preferences and tier. Stats are left untouched."""
        prefs = subscriber.preferences
        await self._db.execute(
            _UPSERT_SUBSCRIBER_SQL,
            subscriber.email,
            prefs.delivery_time,
            prefs.timezone,
            prefs.llm_provider,
            prefs.subscription_status,
            prefs.paused_until,
            subscriber.tier,
            subscriber.created_at,
        )

    async def mark_active(self, email: str) -> None:
        """Clear an expired pause."""
        await self._db.execute(
            "UPDATE subscribers SET subscription_status = 'active', paused_until = NULL "
            "WHERE email = $1",
            email,
        )
        logger.info("Pause expired, subscriber reactivated", email=email)

    async def increment_stats(
        self,
        email: str,
        input_tokens: int,
        output_tokens: int,
        briefings: int = 1,
        at: datetime | None = None,
    ) -> None:
        """Add to the cumulative counters and stamp ``last_digest_at``."""
        if input_tokens < 0 or output_tokens < 0 or briefings < 0:
            raise ValueError("Stats increments must be non-negative")

        await self._db.execute(
            _INCREMENT_STATS_SQL,
            email,
            input_tokens,
            output_tokens,
            briefings,
            at or datetime.now(timezone.utc),
        )

    async def list_sources(self, email: str) -> list[Source]:
        rows = await self._db.fetch(_SOURCES_FOR_SQL, email)
        return [_record_to_source(r) for r in rows]

    async def add_source(self, email: str, source: Source) -> bool:
        """Attach a source to a subscriber.

        The feed endpoint is normalized first. Returns False (and changes
        nothing) when the subscriber already has that endpoint.
        """
        source.feed_endpoint = normalize_feed_endpoint(source.feed_endpoint)
        inserted = await self._db.fetchval(
            _INSERT_SOURCE_SQL,
            source.id,
            email,
            source.type.value,
            source.name,
            source.feed_endpoint,
            source.original_url,
            source.enabled,
            source.favicon,
            source.added_at,
        )
        if inserted is None:
            logger.debug("Source already present", email=email, feed_endpoint=source.feed_endpoint)
            return False
        return True

    async def set_source_enabled(self, email: str, source_id: str, enabled: bool) -> bool:
        """Toggle a source. Returns False if the source does not exist."""
        result = await self._db.execute(
            "UPDATE subscriber_sources SET enabled = $3 WHERE email = $1 AND id = $2",
            email, source_id, enabled,
        )
        return result == "UPDATE 1"

    async def remove_source(self, email: str, source_id: str) -> bool:
        """Delete a source. Returns False if the source does not exist."""
        result = await self._db.execute(
            "DELETE FROM subscriber_sources WHERE email = $1 AND id = $2",
            email, source_id,
        )
        return result == "DELETE 1"
