"""
Scrape orchestrator.

Fans a batch of URLs out to the browser pool and collects one result per URL,
in input order. A failing URL never affects its siblings.
"""

import asyncio
from decimal import Decimal
from typing import List, Optional, Sequence, Union

import structlog

from retail_scraper.exceptions import InvalidInput, PoolInitializationFailure, UnsupportedRetailer
from retail_scraper.models.scrape import ScrapeBatch, ScrapeResult, ScrapeTask, normalize_urls
from retail_scraper.services.pricing.exchange_rates import to_rate
from retail_scraper.services.scraper.browser_pool import BrowserPool
from retail_scraper.services.scraper.profiles import RetailerProfile, get_profile

logger = structlog.get_logger(__name__)

UrlInput = Union[str, Sequence[str]]
RateInput = Optional[Union[Decimal, float, int, str]]


class ScrapeOrchestrator:
    """Runs batches of scrape tasks on a shared browser pool."""

    def __init__(self, pool: BrowserPool):
        self.pool = pool

    @staticmethod
    def _prepare(urls: UrlInput, rate: RateInput) -> tuple:
        url_list = normalize_urls(urls)
        if not url_list:
            raise InvalidInput("At least one URL is required")
        return url_list, to_rate(rate) if rate is not None else None

    async def scrape_many(self, urls: UrlInput, rate: RateInput) -> ScrapeBatch:
        """
        Scrape every URL concurrently and price the results.

        Args:
            urls: A single URL or a sequence of URLs
            rate: Exchange rate applied to every result, or None to price each
                result with the latest stored rate

        Returns:
            ScrapeBatch with exactly one result per input URL

        Raises:
            InvalidInput: on an empty URL list, a blank entry or a non-positive rate
            PoolInitializationFailure: if the browser pool cannot start
        """
        url_list, exchange_rate = self._prepare(urls, rate)
        return await self._run(url_list, exchange_rate)

    async def scrape_for_retailer(
        self,
        retailer: str,
        urls: UrlInput,
        rate: RateInput,
    ) -> ScrapeBatch:
        """
        Scrape URLs that must all belong to one retailer.

        Raises:
            UnsupportedRetailer: for an unknown retailer or a URL outside its domains
        """
        url_list, exchange_rate = self._prepare(urls, rate)
        self.validate_for_retailer(retailer, url_list)
        return await self._run(url_list, exchange_rate)

    @staticmethod
    def validate_for_retailer(retailer: str, urls: UrlInput) -> RetailerProfile:
        """
        Check that every URL belongs to the retailer.

        Raises:
            UnsupportedRetailer: for an unknown retailer or a URL outside its domains
        """
        profile = get_profile(retailer)
        for url in normalize_urls(urls):
            if not profile.matches(url):
                raise UnsupportedRetailer(f"Invalid {profile.display_name} URL")
        return profile

    async def _run(self, url_list: List[str], rate: Optional[Decimal]) -> ScrapeBatch:
        logger.info("Starting scrape batch", url_count=len(url_list), rate=str(rate) if rate is not None else "latest")

        tasks = [ScrapeTask(url=url, rate=rate) for url in url_list]
        outcomes = await asyncio.gather(
            *(self.pool.execute(task) for task in tasks),
            return_exceptions=True,
        )

        results: List[ScrapeResult] = []
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, PoolInitializationFailure):
                raise outcome
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Unexpected scrape error", url=task.url, error=str(outcome), exc_info=outcome)
                outcome = ScrapeResult.failure(task.url, f"Scraping failed: {outcome}")
            results.append(outcome)

        batch = ScrapeBatch(results=results)
        logger.info(
            "Scrape batch completed",
            total=batch.total,
            successful=batch.successful,
            failed=batch.failed,
        )
        return batch
