"""
Scraping background tasks.

Task names double as event names: producers emit ``scraping/product.requested``
or ``scrape/<retailer>`` through ``JobTrigger`` and the worker picks them up.
Per-retailer jobs run as a chain of checkpointed steps so a retry resumes at
the failing step instead of starting over.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

import structlog
from celery import chain

from retail_scraper.config.celery import CallbackTask, celery_app
from retail_scraper.config.database import create_engine_for_url, create_session_factory
from retail_scraper.config.settings import get_settings
from retail_scraper.exceptions import (
    ExtractionFailure,
    NavigationFailure,
    NoRateAvailable,
    UnsupportedRetailer,
)
from retail_scraper.models.scrape import normalize_urls
from retail_scraper.services.pricing.calculator import PriceCalculator
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore, to_rate
from retail_scraper.services.scraper.browser_pool import BrowserPool
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator
from retail_scraper.services.scraper.profiles import get_profile

logger = structlog.get_logger(__name__)

settings = get_settings()

STEP_RETRY_OPTIONS = {
    "autoretry_for": (NavigationFailure, ExtractionFailure),
    "max_retries": settings.JOB_MAX_RETRIES,
    "default_retry_delay": settings.JOB_RETRY_COUNTDOWN_SECONDS,
}


def create_pool(calculator: Optional[PriceCalculator] = None) -> BrowserPool:
    """Short-lived pool for one task run."""
    return BrowserPool(get_settings(), calculator=calculator)


async def _scrape_urls_async(urls: List[str], rate: Any) -> Dict[str, Any]:
    pool = create_pool()
    try:
        batch = await ScrapeOrchestrator(pool).scrape_many(urls, rate)
    finally:
        await pool.shutdown()
    return batch.to_dict()


@celery_app.task(bind=True, base=CallbackTask, name="scraping/product.requested")
def scrape_product_requested(self, url: Union[str, List[str]], rate: Any) -> Dict[str, Any]:
    """
    Scrape and price the requested product URLs.

    Args:
        url: One URL or a list of URLs
        rate: Exchange rate to apply

    Returns:
        Batch result in wire shape
    """
    urls = normalize_urls(url)
    logger.info("Scrape job received", task_id=self.request.id, url_count=len(urls))
    return asyncio.run(_scrape_urls_async(urls, rate))


# Step pipeline

@celery_app.task(bind=True, base=CallbackTask, name="scrape.step.validate_input")
def validate_input(self, retailer: str, url: str, rate: Any) -> Dict[str, Any]:
    """Check the URL belongs to the retailer and the rate is usable."""
    profile = get_profile(retailer)
    url = (url or "").strip()
    if not profile.matches(url):
        raise UnsupportedRetailer(f"Invalid {profile.display_name} URL")

    return {"retailer": profile.name, "url": url, "rate": str(to_rate(rate))}


async def _launch_and_extract_async(url: str) -> Dict[str, Optional[str]]:
    pool = create_pool()
    try:
        product = await pool.extract(url)
    finally:
        await pool.shutdown()
    return {
        "title": product.title,
        "price": product.price,
        "image": product.image,
        "size": product.size,
    }


@celery_app.task(bind=True, base=CallbackTask, name="scrape.step.launch_and_extract", **STEP_RETRY_OPTIONS)
def launch_and_extract(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Load the product page and extract its raw fields."""
    logger.info(
        "Extracting product",
        task_id=self.request.id,
        url=payload["url"],
        attempt=self.request.retries + 1,
    )
    fields = asyncio.run(_launch_and_extract_async(payload["url"]))
    return {**payload, **fields}


@celery_app.task(bind=True, base=CallbackTask, name="scrape.step.calculate_price")
def calculate_price(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Price the extracted product with the rate captured at validation."""
    calculated = PriceCalculator().calculate(payload["price"], payload["url"], payload["rate"])
    logger.info("Product priced", url=payload["url"], calculated_price=calculated)
    return {**payload, "calculatedPrice": calculated, "success": True}


def build_retailer_pipeline(retailer: str, url: str, rate: Any):
    """Chain the three steps for one retailer URL."""
    return chain(
        validate_input.s(retailer, url, rate),
        launch_and_extract.s(),
        calculate_price.s(),
    )


def _start_pipeline(task_id: str, retailer: str, url: str, rate: Any) -> Dict[str, Any]:
    result = build_retailer_pipeline(retailer, url, rate).apply_async()
    logger.info("Retailer pipeline started", task_id=task_id, retailer=retailer, url=url, pipeline_id=result.id)
    return {"retailer": retailer, "url": url, "pipeline_id": result.id}


@celery_app.task(bind=True, base=CallbackTask, name="scrape/coles")
def scrape_coles(self, url: str, rate: Any) -> Dict[str, Any]:
    return _start_pipeline(self.request.id, "coles", url, rate)


@celery_app.task(bind=True, base=CallbackTask, name="scrape/chemist-warehouse")
def scrape_chemist_warehouse(self, url: str, rate: Any) -> Dict[str, Any]:
    return _start_pipeline(self.request.id, "chemist-warehouse", url, rate)


@celery_app.task(bind=True, base=CallbackTask, name="scrape/woolworths")
def scrape_woolworths(self, url: str, rate: Any) -> Dict[str, Any]:
    return _start_pipeline(self.request.id, "woolworths", url, rate)


# Scheduled jobs

async def _price_update_async(urls: List[str]) -> Dict[str, Any]:
    current = get_settings()
    engine = create_engine_for_url(current.DATABASE_URL)
    try:
        store = ExchangeRateStore(create_session_factory(engine))
        try:
            rate = await store.get_latest_rate()
        except NoRateAvailable as e:
            logger.warning("Skipping price update", reason=e.message)
            return {"status": "skipped", "reason": e.message}

        # Each product is priced with the rate current when it is calculated
        pool = create_pool(calculator=PriceCalculator(rate_provider=store.get_latest_rate))
        try:
            batch = await ScrapeOrchestrator(pool).scrape_many(urls, None)
        finally:
            await pool.shutdown()
    finally:
        await engine.dispose()

    return {"status": "completed", "rate": str(rate), **batch.to_dict()}


@celery_app.task(bind=True, base=CallbackTask, name="app/price-update.scheduled")
def price_update_scheduled(self, urls: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Re-scrape tracked products with the latest stored exchange rate.

    Args:
        urls: Products to refresh, defaults to ``TRACKED_PRODUCT_URLS``
    """
    tracked = normalize_urls(urls if urls is not None else get_settings().TRACKED_PRODUCT_URLS)
    if not tracked:
        logger.info("No tracked products to update", task_id=self.request.id)
        return {"status": "skipped", "reason": "No tracked products"}

    logger.info("Starting scheduled price update", task_id=self.request.id, url_count=len(tracked))
    return asyncio.run(_price_update_async(tracked))
