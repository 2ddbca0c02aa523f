"""
Pytest configuration and shared fixtures for testing.
"""

from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from retail_scraper.config.database import create_engine_for_url, create_session_factory, init_database
from retail_scraper.config.settings import Settings
from retail_scraper.main import create_app
from retail_scraper.services.job_trigger import JobTrigger
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore
from retail_scraper.services.scraper.browser_pool import BrowserPool
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator
from tests.mocks.fake_browser import FakeBrowser, FakePlaywrightManager, StubPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no waiting between attempts."""
    return Settings(
        MAX_CONCURRENT_CONTEXTS=2,
        SETTLE_DELAY_SECONDS=0,
        SCRAPE_RETRY_ATTEMPTS=2,
        SCRAPE_RETRY_DELAY_SECONDS=0,
        NAVIGATION_TIMEOUT_MS=1000,
        SELECTOR_TIMEOUT_MS=500,
    )


@pytest_asyncio.fixture
async def test_engine():
    """In-memory database with all tables created."""
    engine = create_engine_for_url(TEST_DATABASE_URL)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def rate_store(test_engine) -> ExchangeRateStore:
    return ExchangeRateStore(create_session_factory(test_engine))


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def playwright_manager(fake_browser) -> FakePlaywrightManager:
    return FakePlaywrightManager(fake_browser)


@pytest_asyncio.fixture
async def browser_pool(test_settings, playwright_manager) -> AsyncGenerator[BrowserPool, None]:
    """Browser pool running on the fake browser."""
    pool = BrowserPool(test_settings, playwright_factory=playwright_manager)
    yield pool
    await pool.shutdown()


@pytest.fixture
def mock_celery():
    """Celery app double whose send_task always succeeds."""
    celery_app = MagicMock()
    celery_app.send_task.return_value = MagicMock(id="task-123")
    return celery_app


@pytest.fixture
def stub_pool() -> StubPool:
    return StubPool()


@pytest.fixture
def app(test_engine, rate_store, stub_pool, mock_celery):
    """Application with its services wired to test doubles."""
    application = create_app()
    application.state.engine = test_engine
    application.state.rate_store = rate_store
    application.state.pool = stub_pool
    application.state.orchestrator = ScrapeOrchestrator(stub_pool)
    application.state.job_trigger = JobTrigger(mock_celery)
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client calling the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
