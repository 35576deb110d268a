"""Database repository for usage events, error events and briefing archives.

Usage and error events are append-only. The archive keeps at most one
briefing per (email, date); writing the same date again replaces it.
``latest_briefings`` holds exactly one row per subscriber.
"""

from datetime import date

from signal_digest.accounting.schemas import Briefing, ErrorEvent, UsageEvent
from signal_digest.storage.database import Database

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS usage_events (
    id            BIGSERIAL PRIMARY KEY,
    email         TEXT NOT NULL,
    provider      TEXT NOT NULL,
    model         TEXT NOT NULL,
    input_tokens  INTEGER NOT NULL,
    output_tokens INTEGER NOT NULL,
    cost          NUMERIC(14, 6) NOT NULL,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_usage_events_email_created
    ON usage_events(email, created_at DESC);

CREATE TABLE IF NOT EXISTS error_events (
    id         BIGSERIAL PRIMARY KEY,
    email      TEXT NOT NULL,
    stage      TEXT NOT NULL,
    message    TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_error_events_email_created
    ON error_events(email, created_at DESC);

CREATE TABLE IF NOT EXISTS briefing_archive (
    email        TEXT NOT NULL,
    archive_date DATE NOT NULL,
    briefing     JSONB NOT NULL,
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (email, archive_date)
);

CREATE TABLE IF NOT EXISTS latest_briefings (
    email      TEXT PRIMARY KEY,
    briefing   JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_INSERT_USAGE_SQL = """
INSERT INTO usage_events (email, provider, model, input_tokens, output_tokens, cost, created_at)
VALUES ($1, $2, $3, $4, $5, $6, $7)
RETURNING id
"""

_INSERT_ERROR_SQL = """
INSERT INTO error_events (email, stage, message, created_at)
VALUES ($1, $2, $3, $4)
RETURNING id
"""

_UPSERT_ARCHIVE_SQL = """
INSERT INTO briefing_archive (email, archive_date, briefing, updated_at)
VALUES ($1, $2, $3::jsonb, NOW())
ON CONFLICT (email, archive_date) DO UPDATE SET
    briefing = EXCLUDED.briefing,
    updated_at = NOW()
"""

_UPSERT_LATEST_SQL = """
INSERT INTO latest_briefings (email, briefing, updated_at)
VALUES ($1, $2::jsonb, NOW())
ON CONFLICT (email) DO UPDATE SET
    briefing = EXCLUDED.briefing,
    updated_at = NOW()
"""


def _briefing_from_column(value) -> Briefing:
    """JSONB comes back as text unless a codec is registered on the pool."""
    if isinstance(value, (str, bytes)):
        return Briefing.model_validate_json(value)
    return Briefing.model_validate(value)


def _record_to_usage_event(record) -> UsageEvent:
    return UsageEvent(
        id=record["id"],
        email=record["email"],
        provider=record["provider"],
        model=record["model"],
        input_tokens=record["input_tokens"],
        output_tokens=record["output_tokens"],
        cost=record["cost"],
        created_at=record["created_at"],
    )


def _record_to_error_event(record) -> ErrorEvent:
    return ErrorEvent(
        id=record["id"],
        email=record["email"],
        stage=record["stage"],
        message=record["message"],
        created_at=record["created_at"],
    )


class AccountingRepository:
    """Usage log, error log and briefing archive."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create accounting tables and indexes (idempotent)."""
        await self._db.apply_schema("accounting", _CREATE_TABLES_SQL)

    # ── Append-only logs ──────────────────────────────────

    async def record_usage(self, event: UsageEvent) -> UsageEvent:
        event.id = await self._db.fetchval(
            _INSERT_USAGE_SQL,
            event.email,
            event.provider,
            event.model,
            event.input_tokens,
            event.output_tokens,
            event.cost,
            event.created_at,
        )
        return event

    async def record_error(self, event: ErrorEvent) -> ErrorEvent:
        event.id = await self._db.fetchval(
            _INSERT_ERROR_SQL,
            event.email,
            event.stage,
            event.message,
            event.created_at,
        )
        return event

    async def list_usage(self, email: str, limit: int = 50) -> list[UsageEvent]:
        rows = await self._db.fetch(
            "SELECT * FROM usage_events WHERE email = $1 ORDER BY created_at DESC LIMIT $2",
            email, limit,
        )
        return [_record_to_usage_event(r) for r in rows]

    async def list_errors(self, email: str, limit: int = 50) -> list[ErrorEvent]:
        rows = await self._db.fetch(
            "SELECT * FROM error_events WHERE email = $1 ORDER BY created_at DESC LIMIT $2",
            email, limit,
        )
        return [_record_to_error_event(r) for r in rows]

    # ── Briefings ─────────────────────────────────────────

    async def save_briefing(self, email: str, archive_date: date, briefing: Briefing) -> None:
        """Upsert the dated archive entry and overwrite the latest briefing."""
        payload = briefing.model_dump_json()
        async with self._db.transaction() as conn:
            await conn.execute(_UPSERT_ARCHIVE_SQL, email, archive_date, payload)
            await conn.execute(_UPSERT_LATEST_SQL, email, payload)

    async def list_archive_dates(self, email: str) -> list[date]:
        """Archived dates for a subscriber, newest first."""
        rows = await self._db.fetch(
            "SELECT archive_date FROM briefing_archive WHERE email = $1 "
            "ORDER BY archive_date DESC",
            email,
        )
        return [r["archive_date"] for r in rows]

    async def get_archived_briefing(self, email: str, archive_date: date) -> Briefing | None:
        value = await self._db.fetchval(
            "SELECT briefing FROM briefing_archive WHERE email = $1 AND archive_date = $2",
            email, archive_date,
        )
        return _briefing_from_column(value) if value is not None else None

    async def get_latest_briefing(self, email: str) -> Briefing | None:
        value = await self._db.fetchval(
            "SELECT briefing FROM latest_briefings WHERE email = $1",
            email,
        )
        return _briefing_from_column(value) if value is not None else None

