"""
Background job trigger.

Emits scrape events onto the Celery broker. Emission is best-effort: a broker
outage is logged and reported as ``False`` but never fails the caller's
request.
"""

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

import structlog
from celery import Celery

from retail_scraper.exceptions import UnsupportedRetailer
from retail_scraper.models.scrape import normalize_urls
from retail_scraper.services.scraper.profiles import get_profile

logger = structlog.get_logger(__name__)

PRODUCT_REQUESTED_EVENT = "scraping/product.requested"
PRICE_UPDATE_EVENT = "app/price-update.scheduled"

RETAILER_EVENTS: Dict[str, str] = {
    "coles": "scrape/coles",
    "chemist-warehouse": "scrape/chemist-warehouse",
    "woolworths": "scrape/woolworths",
}


def retailer_event(retailer: str) -> str:
    """
    Resolve the per-retailer event name.

    Raises:
        UnsupportedRetailer: if the retailer has no background pipeline
    """
    profile = get_profile(retailer)
    try:
        return RETAILER_EVENTS[profile.name]
    except KeyError:
        allowed = ", ".join(RETAILER_EVENTS)
        raise UnsupportedRetailer(
            f"No background pipeline for '{retailer}'. Supported retailers: {allowed}"
        )


class JobTrigger:
    """Sends scrape events to Celery workers."""

    def __init__(self, celery_app: Celery):
        self.celery_app = celery_app

    async def emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Send one event and wait for the broker to accept it.

        Returns:
            The task id, or None if emission failed
        """
        try:
            result = await asyncio.to_thread(self.celery_app.send_task, event, kwargs=payload or {})
        except Exception as e:
            logger.error("Failed to emit event", event_name=event, error=str(e), exception_type=type(e).__name__)
            return None

        logger.info("Event emitted", event_name=event, task_id=result.id)
        return result.id

    async def notify(self, urls: Union[str, List[str]], rate: Union[Decimal, float, str]) -> bool:
        """Emit ``scraping/product.requested`` for a batch of URLs."""
        url_list = normalize_urls(urls)
        payload = {
            "url": url_list[0] if len(url_list) == 1 else url_list,
            "rate": str(rate),
        }
        return await self.emit(PRODUCT_REQUESTED_EVENT, payload) is not None

    async def notify_retailer(self, retailer: str, url: str, rate: Union[Decimal, float, str]) -> bool:
        """
        Emit the per-retailer step pipeline event for one URL.

        Raises:
            UnsupportedRetailer: if the retailer has no background pipeline
        """
        event = retailer_event(retailer)
        return await self.emit(event, {"url": url, "rate": str(rate)}) is not None

    async def notify_for_retailer(self, retailer: str, urls: Union[str, List[str]], rate: Union[Decimal, float, str]) -> bool:
        """
        Emit per-retailer pipeline events, one per URL.

        Retailers without a step pipeline fall back to the generic
        ``scraping/product.requested`` event.
        """
        profile = get_profile(retailer)
        if profile.name not in RETAILER_EVENTS:
            return await self.notify(urls, rate)

        sent = [await self.notify_retailer(profile.name, url, rate) for url in normalize_urls(urls)]
        return all(sent)

    async def request_price_update(self, urls: Optional[List[str]] = None) -> bool:
        """Trigger the price update job outside its daily schedule."""
        payload = {"urls": normalize_urls(urls)} if urls else {}
        return await self.emit(PRICE_UPDATE_EVENT, payload) is not None
