"""
Unit tests for the scrape orchestrator.
"""

import re
from decimal import Decimal

import pytest

from retail_scraper.exceptions import InvalidInput, PoolInitializationFailure, UnsupportedRetailer
from retail_scraper.models.scrape import normalize_urls
from retail_scraper.services.scraper.browser_pool import BrowserPool
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator
from tests.mocks.fake_browser import FakeBrowser, FakePlaywrightManager, StubPool, successful_result
from tests.mocks.retailer_html import (
    CHEMIST_WAREHOUSE_PRODUCT_HTML,
    COLES_URL,
    GENERIC_NO_PRICE_HTML,
    WOOLWORTHS_URL,
)

URLS = [
    "https://www.chemistwarehouse.com.au/buy/1/a",
    "https://www.chemistwarehouse.com.au/buy/2/b",
    "https://www.chemistwarehouse.com.au/buy/3/c",
    "https://www.chemistwarehouse.com.au/buy/4/d",
]


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [1, 2, 4])
async def test_one_result_per_url(count):
    pool = StubPool({url: successful_result(url) for url in URLS})

    batch = await ScrapeOrchestrator(pool).scrape_many(URLS[:count], Decimal("185.5"))

    assert batch.total == count
    assert len(batch.results) == count


@pytest.mark.asyncio
async def test_single_url_string_is_accepted():
    pool = StubPool({URLS[0]: successful_result(URLS[0])})

    batch = await ScrapeOrchestrator(pool).scrape_many(URLS[0], "185.5")

    assert batch.total == 1
    assert pool.tasks[0].rate == Decimal("185.5")


@pytest.mark.asyncio
async def test_failures_are_isolated_and_order_is_kept():
    pool = StubPool(
        {
            URLS[0]: successful_result(URLS[0]),
            URLS[1]: RuntimeError("renderer crashed"),
            URLS[3]: successful_result(URLS[3]),
        }
    )

    batch = await ScrapeOrchestrator(pool).scrape_many(URLS, 185.5)

    assert [result.url for result in batch.results] == URLS
    assert [result.success for result in batch.results] == [True, False, False, True]
    assert batch.successful == 2
    assert batch.failed == 2
    assert batch.results[1].error == "Scraping failed: renderer crashed"


@pytest.mark.asyncio
async def test_pool_initialization_failure_escalates():
    pool = StubPool(init_error=PoolInitializationFailure("Executable doesn't exist at /x"))

    with pytest.raises(PoolInitializationFailure):
        await ScrapeOrchestrator(pool).scrape_many(URLS, 185.5)


@pytest.mark.asyncio
@pytest.mark.parametrize("urls", [[], "", ["  "], None])
async def test_empty_input_is_rejected(urls):
    with pytest.raises(InvalidInput):
        await ScrapeOrchestrator(StubPool()).scrape_many(urls, 185.5)


@pytest.mark.asyncio
@pytest.mark.parametrize("rate", [0, -1, "abc"])
async def test_invalid_rate_is_rejected(rate):
    pool = StubPool()

    with pytest.raises(InvalidInput):
        await ScrapeOrchestrator(pool).scrape_many(URLS, rate)
    assert pool.tasks == []


@pytest.mark.asyncio
async def test_retailer_scrape_rejects_foreign_url():
    pool = StubPool()

    with pytest.raises(UnsupportedRetailer) as exc_info:
        await ScrapeOrchestrator(pool).scrape_for_retailer("coles", [COLES_URL, WOOLWORTHS_URL], 185.5)

    assert exc_info.value.message == "Invalid Coles URL"
    assert pool.tasks == []


@pytest.mark.asyncio
async def test_retailer_scrape_accepts_own_urls():
    pool = StubPool({COLES_URL: successful_result(COLES_URL)})

    batch = await ScrapeOrchestrator(pool).scrape_for_retailer("coles", COLES_URL, 185.5)

    assert batch.successful == 1


@pytest.mark.asyncio
async def test_known_and_unknown_retailer_batch(test_settings):
    chemist_url = "https://chemistwarehouse.com.au/p/1"
    unknown_url = "https://unknown.example.com/p/2"
    browser = FakeBrowser(
        pages={
            chemist_url: CHEMIST_WAREHOUSE_PRODUCT_HTML,
            unknown_url: GENERIC_NO_PRICE_HTML,
        }
    )
    pool = BrowserPool(test_settings, playwright_factory=FakePlaywrightManager(browser))

    try:
        batch = await ScrapeOrchestrator(pool).scrape_many([chemist_url, unknown_url], 185.5)
    finally:
        await pool.shutdown()

    assert batch.total == 2
    first, second = batch.results
    assert first.success
    assert re.fullmatch(r"\d+\.\d{2}", first.calculated_price)
    assert not second.success
    assert "Failed to extract price" in second.error

    payload = batch.to_dict()
    assert payload["results"][0]["calculatedPrice"] == first.calculated_price
    assert "calculatedPrice" not in payload["results"][1]


@pytest.mark.asyncio
async def test_blank_entry_in_batch_is_rejected():
    pool = StubPool({URLS[0]: successful_result(URLS[0])})

    with pytest.raises(InvalidInput) as exc_info:
        await ScrapeOrchestrator(pool).scrape_many([URLS[0], "   "], "185.5")

    assert exc_info.value.message == "URL is required"
    assert pool.tasks == []


def test_normalize_urls_keeps_every_entry():
    assert normalize_urls([f" {URLS[0]} ", URLS[0]]) == [URLS[0], URLS[0]]
    assert normalize_urls(URLS[1]) == [URLS[1]]
    assert normalize_urls("  ") == []
    assert normalize_urls(None) == []
