"""
Background job endpoints.

Queue scrape pipelines on the Celery workers without waiting for results.
"""

import structlog
from fastapi import APIRouter, Depends, Path, status

from retail_scraper.api.dependencies import get_job_trigger, get_rate_store
from retail_scraper.exceptions import InvalidInput
from retail_scraper.models.schemas import JobRequest, JobResponse, PriceUpdateRequest
from retail_scraper.services.job_trigger import PRICE_UPDATE_EVENT, JobTrigger, retailer_event
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/price-update", response_model=JobResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_price_update(
    payload: PriceUpdateRequest,
    trigger: JobTrigger = Depends(get_job_trigger),
):
    """Run the daily price update now."""
    accepted = await trigger.request_price_update(payload.urls)
    return JobResponse(
        success=accepted,
        message="Price update queued" if accepted else "Failed to queue price update",
        event=PRICE_UPDATE_EVENT,
        count=len(payload.urls or []),
    )


@router.post("/{retailer}", response_model=JobResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_retailer_jobs(
    payload: JobRequest,
    retailer: str = Path(..., description="Retailer slug: coles, chemist or woolworths"),
    store: ExchangeRateStore = Depends(get_rate_store),
    trigger: JobTrigger = Depends(get_job_trigger),
):
    """
    Queue one step pipeline per URL for a retailer.

    Returns:
        JobResponse with the event name and number of URLs queued
    """
    urls = payload.all_urls()
    if not urls:
        raise InvalidInput("URL is required")

    event = retailer_event(retailer)
    profile = ScrapeOrchestrator.validate_for_retailer(retailer, urls)
    rate = payload.rate if payload.rate is not None else await store.get_latest_rate()

    accepted = await trigger.notify_for_retailer(profile.name, urls, rate)
    logger.info("Retailer jobs requested", retailer=profile.name, url_count=len(urls), accepted=accepted)

    return JobResponse(
        success=accepted,
        message=f"Queued {len(urls)} {profile.display_name} job(s)" if accepted else "Failed to queue jobs",
        event=event,
        count=len(urls),
    )
