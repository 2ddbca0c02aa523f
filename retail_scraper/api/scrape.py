"""
Scrape API Endpoints

Synchronous scraping: every request returns one result per URL. The same
URLs and rate are handed to the background job trigger in parallel.
"""

import asyncio
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Path, Query

from retail_scraper.api.dependencies import (
    get_job_trigger,
    get_orchestrator,
    get_rate_store,
    resolve_rate,
)
from retail_scraper.exceptions import InvalidInput
from retail_scraper.models.schemas import ErrorResponse, ScrapeResponse
from retail_scraper.models.scrape import normalize_urls
from retail_scraper.services.job_trigger import JobTrigger
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing URL, invalid rate or unsupported retailer"},
    500: {"model": ErrorResponse, "description": "Browser pool could not start"},
}


def _require_urls(url: Optional[List[str]]) -> List[str]:
    urls = normalize_urls(url)
    if not urls:
        raise InvalidInput("URL is required")
    return urls


@router.get(
    "/scrape",
    response_model=ScrapeResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def scrape(
    url: Optional[List[str]] = Query(None, description="Product page URL, repeat for a batch"),
    rate: Optional[str] = Query(None, description="AUD to LKR rate, defaults to the latest stored rate"),
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    store: ExchangeRateStore = Depends(get_rate_store),
    trigger: JobTrigger = Depends(get_job_trigger),
):
    """
    Scrape and price products from any supported retailer.

    Args:
        url: One or more product URLs
        rate: Exchange rate override

    Returns:
        Results in input order with total, successful and failed counts
    """
    urls = _require_urls(url)
    exchange_rate = await resolve_rate(rate, store)

    batch, _ = await asyncio.gather(
        orchestrator.scrape_many(urls, exchange_rate),
        trigger.notify(urls, exchange_rate),
    )
    return batch.to_dict()


@router.get(
    "/api/{retailer}/scrape",
    response_model=ScrapeResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def scrape_retailer(
    retailer: str = Path(..., description="Retailer slug: chemist, coles, woolworths, aldi or officeworks"),
    url: Optional[List[str]] = Query(None, description="Product page URL, repeat for a batch"),
    rate: Optional[str] = Query(None, description="AUD to LKR rate, defaults to the latest stored rate"),
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    store: ExchangeRateStore = Depends(get_rate_store),
    trigger: JobTrigger = Depends(get_job_trigger),
):
    """Scrape products that must all belong to one retailer."""
    urls = _require_urls(url)
    profile = orchestrator.validate_for_retailer(retailer, urls)
    exchange_rate = await resolve_rate(rate, store)

    batch, _ = await asyncio.gather(
        orchestrator.scrape_for_retailer(profile.name, urls, exchange_rate),
        trigger.notify_for_retailer(profile.name, urls, exchange_rate),
    )
    return batch.to_dict()
