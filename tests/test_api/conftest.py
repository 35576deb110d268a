"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from signal_digest.accounting.schemas import Briefing, TokenUsage
from signal_digest.api.app import create_app
from signal_digest.api.auth import verify_api_key, verify_cron_secret
from signal_digest.api.dependencies import (
    get_accounting_repository,
    get_database,
    get_discovery_engine,
    get_feed_fetcher,
    get_orchestrator,
    get_scheduler,
    get_subscriber_repository,
)
from signal_digest.config.settings import get_settings
from signal_digest.dispatch.schemas import DispatchAck
from signal_digest.ingestion.feed_fetcher import FeedPreview
from tests.conftest import NOW, make_item


def _make_briefing(subject: str = "Your Daily Digest - Monday, March 2") -> Briefing:
    """Helper to create a Briefing with two top stories."""
    return Briefing(
        narrative="Good morning! Here's your quick briefing.",
        subject=subject,
        top_stories=[make_item("Chipmakers rally"), make_item("Fab delays")],
        generated_at=NOW,
        token_usage=TokenUsage(input=900, output=250, provider="gemini", model="gemini-2.5-flash"),
    )


def _mock_db(healthy: bool = True):
    """Create a mock database."""
    db = AsyncMock()
    if healthy:
        db.health_check = AsyncMock(return_value=True)
    else:
        db.health_check = AsyncMock(side_effect=Exception("Connection refused"))
    return db


@pytest.fixture
def mock_subscriber_repo():
    """Mock SubscriberRepository."""
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.add_source = AsyncMock(return_value=True)
    repo.set_source_enabled = AsyncMock(return_value=True)
    repo.remove_source = AsyncMock(return_value=True)
    repo.list_sources = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_accounting_repo():
    """Mock AccountingRepository."""
    repo = AsyncMock()
    repo.list_archive_dates = AsyncMock(return_value=[])
    repo.get_archived_briefing = AsyncMock(return_value=None)
    repo.get_latest_briefing = AsyncMock(return_value=None)
    repo.list_usage = AsyncMock(return_value=[])
    repo.list_errors = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_orchestrator():
    """Mock DispatchOrchestrator that accepts every trigger."""
    orchestrator = AsyncMock()
    orchestrator.dispatch = AsyncMock(return_value=DispatchAck.accepted())
    return orchestrator


@pytest.fixture
def mock_scheduler():
    """Mock DeliveryScheduler with an empty tick."""
    scheduler = AsyncMock()
    scheduler.tick = AsyncMock(return_value=[])
    return scheduler


@pytest.fixture
def mock_engine():
    """Mock DiscoveryEngine."""
    engine = AsyncMock()
    engine.search = AsyncMock(return_value=[])
    return engine


@pytest.fixture
def mock_fetcher():
    """Mock FeedFetcher whose previews find nothing."""
    fetcher = AsyncMock()
    fetcher.preview = AsyncMock(
        side_effect=lambda endpoint, *args, **kwargs: FeedPreview(endpoint=endpoint, ok=False)
    )
    return fetcher


@pytest.fixture
def client(
    mock_subscriber_repo,
    mock_accounting_repo,
    mock_orchestrator,
    mock_scheduler,
    mock_engine,
    mock_fetcher,
):
    """Test client with every dependency mocked and auth bypassed."""
    app = create_app()
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[verify_cron_secret] = lambda: "test-secret"
    app.dependency_overrides[get_database] = lambda: _mock_db()
    app.dependency_overrides[get_subscriber_repository] = lambda: mock_subscriber_repo
    app.dependency_overrides[get_accounting_repository] = lambda: mock_accounting_repo
    app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator
    app.dependency_overrides[get_scheduler] = lambda: mock_scheduler
    app.dependency_overrides[get_discovery_engine] = lambda: mock_engine
    app.dependency_overrides[get_feed_fetcher] = lambda: mock_fetcher

    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are re-read from the environment for each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
