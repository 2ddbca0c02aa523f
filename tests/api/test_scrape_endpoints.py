"""
API tests for the scrape endpoints.
"""

from decimal import Decimal

import pytest

from retail_scraper.exceptions import PoolInitializationFailure
from tests.mocks.fake_browser import successful_result
from tests.mocks.retailer_html import ALDI_URL, CHEMIST_WAREHOUSE_URL, COLES_URL, UNKNOWN_URL, WOOLWORTHS_URL


@pytest.mark.asyncio
async def test_scrape_single_url(client, stub_pool, mock_celery):
    stub_pool.results[CHEMIST_WAREHOUSE_URL] = successful_result(CHEMIST_WAREHOUSE_URL, "$41.99", "12852.00")

    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL, "rate": "185.5"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["successful"] == 1
    assert body["failed"] == 0
    assert body["results"][0]["calculatedPrice"] == "12852.00"
    assert stub_pool.tasks[0].rate == Decimal("185.5")
    assert mock_celery.send_task.call_args.args[0] == "scraping/product.requested"


@pytest.mark.asyncio
async def test_scrape_batch_with_partial_failure(client, stub_pool):
    stub_pool.results[CHEMIST_WAREHOUSE_URL] = successful_result(CHEMIST_WAREHOUSE_URL)

    response = await client.get("/scrape", params=[("url", CHEMIST_WAREHOUSE_URL), ("url", UNKNOWN_URL), ("rate", "185.5")])

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [r["url"] for r in body["results"]] == [CHEMIST_WAREHOUSE_URL, UNKNOWN_URL]
    assert body["results"][1]["success"] is False
    assert "calculatedPrice" not in body["results"][1]
    assert "Failed to extract price" in body["results"][1]["error"]


@pytest.mark.asyncio
async def test_scrape_requires_url(client):
    response = await client.get("/scrape", params={"rate": "185.5"})

    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}


@pytest.mark.asyncio
async def test_scrape_rejects_blank_url_in_batch(client, stub_pool):
    response = await client.get("/scrape", params=[("url", CHEMIST_WAREHOUSE_URL), ("url", " "), ("rate", "185.5")])

    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}
    assert stub_pool.tasks == []


@pytest.mark.asyncio
@pytest.mark.parametrize("rate", ["abc", "0", "-2"])
async def test_scrape_rejects_invalid_rate(client, stub_pool, rate):
    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL, "rate": rate})

    assert response.status_code == 400
    assert stub_pool.tasks == []


@pytest.mark.asyncio
async def test_scrape_uses_latest_stored_rate(client, stub_pool, rate_store):
    await rate_store.record("190")
    stub_pool.results[CHEMIST_WAREHOUSE_URL] = successful_result(CHEMIST_WAREHOUSE_URL)

    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL})

    assert response.status_code == 200
    assert stub_pool.tasks[0].rate == Decimal("190")


@pytest.mark.asyncio
async def test_scrape_without_any_rate(client):
    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL})

    assert response.status_code == 400
    assert "suggestion" in response.json()


@pytest.mark.asyncio
async def test_pool_initialization_failure_returns_500(client, stub_pool):
    stub_pool.init_error = PoolInitializationFailure("Executable doesn't exist at /usr/bin/chromium")

    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL, "rate": "185.5"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Browser initialization failed."
    assert "Executable doesn't exist" in body["details"]
    assert "BROWSER_EXECUTABLE_PATH" in body["suggestion"]


@pytest.mark.asyncio
async def test_event_failure_does_not_block_response(client, stub_pool, mock_celery):
    mock_celery.send_task.side_effect = ConnectionError("broker down")
    stub_pool.results[CHEMIST_WAREHOUSE_URL] = successful_result(CHEMIST_WAREHOUSE_URL)

    response = await client.get("/scrape", params={"url": CHEMIST_WAREHOUSE_URL, "rate": "185.5"})

    assert response.status_code == 200
    assert response.json()["successful"] == 1


@pytest.mark.asyncio
async def test_retailer_scrape(client, stub_pool, mock_celery):
    stub_pool.results[COLES_URL] = successful_result(COLES_URL, "$3.10", "0.00")

    response = await client.get("/api/coles/scrape", params={"url": COLES_URL, "rate": "185.5"})

    assert response.status_code == 200
    assert response.json()["results"][0]["calculatedPrice"] == "0.00"
    assert mock_celery.send_task.call_args.args[0] == "scrape/coles"


@pytest.mark.asyncio
async def test_retailer_scrape_with_alias(client, stub_pool):
    stub_pool.results[CHEMIST_WAREHOUSE_URL] = successful_result(CHEMIST_WAREHOUSE_URL)

    response = await client.get("/api/chemist/scrape", params={"url": CHEMIST_WAREHOUSE_URL, "rate": "185.5"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_retailer_without_pipeline_uses_generic_event(client, stub_pool, mock_celery):
    response = await client.get("/api/aldi/scrape", params={"url": ALDI_URL, "rate": "185.5"})

    assert response.status_code == 200
    assert mock_celery.send_task.call_args.args[0] == "scraping/product.requested"


@pytest.mark.asyncio
async def test_retailer_scrape_rejects_foreign_url(client, stub_pool, mock_celery):
    response = await client.get("/api/coles/scrape", params={"url": WOOLWORTHS_URL, "rate": "185.5"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid Coles URL"
    assert stub_pool.tasks == []
    mock_celery.send_task.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_retailer_slug(client):
    response = await client.get("/api/bunnings/scrape", params={"url": UNKNOWN_URL, "rate": "185.5"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client, stub_pool):
    response = await client.get(
        "/scrape",
        params={"url": CHEMIST_WAREHOUSE_URL, "rate": "185.5"},
        headers={"X-Correlation-ID": "req-42"},
    )

    assert response.headers["X-Correlation-ID"] == "req-42"
