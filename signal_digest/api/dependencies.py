"""
Dependency injection for FastAPI endpoints.
"""

from signal_digest.accounting.repository import AccountingRepository
from signal_digest.discovery.engine import DiscoveryEngine
from signal_digest.dispatch.orchestrator import DispatchOrchestrator
from signal_digest.dispatch.scheduler import DeliveryScheduler
from signal_digest.ingestion.feed_fetcher import FeedFetcher
from signal_digest.storage.database import Database, close_database
from signal_digest.storage.database import get_database as _get_global_database
from signal_digest.subscribers.repository import SubscriberRepository

# Global service instances (initialized on first request)
_subscriber_repository: SubscriberRepository | None = None
_accounting_repository: AccountingRepository | None = None
_orchestrator: DispatchOrchestrator | None = None
_scheduler: DeliveryScheduler | None = None
_discovery_engine: DiscoveryEngine | None = None
_feed_fetcher: FeedFetcher | None = None


async def get_database() -> Database:
    """Get the connected process-wide database."""
    return await _get_global_database()


async def get_subscriber_repository() -> SubscriberRepository:
    """Get subscriber repository instance."""
    global _subscriber_repository

    if _subscriber_repository is None:
        _subscriber_repository = SubscriberRepository(await get_database())

    return _subscriber_repository


async def get_accounting_repository() -> AccountingRepository:
    """Get accounting repository instance."""
    global _accounting_repository

    if _accounting_repository is None:
        _accounting_repository = AccountingRepository(await get_database())

    return _accounting_repository


async def get_orchestrator() -> DispatchOrchestrator:
    """
    Get dispatch orchestrator instance.

    Uses the default aggregator, synthesizer and delivery channel, and the
    process-wide task supervisor drained by the app lifespan.
    """
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = DispatchOrchestrator(
            subscribers=await get_subscriber_repository(),
            accounting=await get_accounting_repository(),
        )

    return _orchestrator


async def get_scheduler() -> DeliveryScheduler:
    """Get delivery scheduler instance."""
    global _scheduler

    if _scheduler is None:
        _scheduler = DeliveryScheduler(
            subscribers=await get_subscriber_repository(),
            orchestrator=await get_orchestrator(),
        )

    return _scheduler


async def get_discovery_engine() -> DiscoveryEngine:
    """Get discovery engine instance (no database needed)."""
    global _discovery_engine

    if _discovery_engine is None:
        _discovery_engine = DiscoveryEngine()

    return _discovery_engine


async def get_feed_fetcher() -> FeedFetcher:
    """Get the feed fetcher used for source previews and artwork lookups."""
    global _feed_fetcher

    if _feed_fetcher is None:
        _feed_fetcher = FeedFetcher()

    return _feed_fetcher


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _subscriber_repository, _accounting_repository, _orchestrator
    global _scheduler, _discovery_engine, _feed_fetcher

    _scheduler = None
    _orchestrator = None
    _discovery_engine = None
    _feed_fetcher = None
    _subscriber_repository = None
    _accounting_repository = None

    await close_database()
