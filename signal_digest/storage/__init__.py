"""Storage: asyncpg connection management and schema bootstrap."""

from signal_digest.storage.database import Database, close_database, get_database

__all__ = ["Database", "close_database", "get_database"]
