"""
asyncpg pool shared by the subscriber and accounting stores.

The subscriber store, the usage/error logs and the briefing archive all live
in one PostgreSQL database. Repositories never touch the pool directly; they
go through the query helpers here so a single pool serves the API process,
the scheduler tick and the CLI.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlsplit

import asyncpg
import structlog

from signal_digest.config.settings import get_settings

logger = structlog.get_logger(__name__)


def _describe_target(url: str) -> str:
    """``host:port/dbname`` for logs, without credentials."""
    parts = urlsplit(url)
    host = parts.hostname or "localhost"
    port = f":{parts.port}" if parts.port else ""
    return f"{host}{port}{parts.path}"


class Database:
    """
    Connection pool plus the handful of query helpers the repositories use.

    Usage:
        db = Database()
        await db.connect()
        await db.apply_schema("subscribers", SUBSCRIBER_DDL)
        row = await db.fetchrow("SELECT ... WHERE email = $1", email)
        await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
    ):
        settings = get_settings()

        self._url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout or settings.db_command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def target(self) -> str:
        return _describe_target(self._url)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool. Calling it twice is a no-op."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Database connect failed", target=self.target, error=str(e))
            raise
        logger.info(
            "Database pool opened",
            target=self.target,
            min_size=self._min_size,
            max_size=self._max_size,
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed", target=self.target)

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected; call connect() first")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """One connection with an open transaction; rolled back on error."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def apply_schema(self, name: str, ddl: str) -> None:
        """Run idempotent DDL for one store inside a single transaction."""
        async with self.transaction() as conn:
            await conn.execute(ddl)
        logger.info("Schema ensured", store=name, target=self.target)

    async def execute(self, query: str, *args: Any) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when a trivial query round-trips. Never raises."""
        if self._pool is None:
            return False
        try:
            return await self.fetchval("SELECT 1") == 1
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError, TimeoutError) as e:
            logger.warning("Database health check failed", target=self.target, error=str(e))
            return False


# Process-wide pool used by the API dependencies
_database: Database | None = None


async def get_database() -> Database:
    """Return the shared Database, connecting it on first use."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


async def close_database() -> None:
    global _database

    if _database is not None:
        await _database.close()
        _database = None
