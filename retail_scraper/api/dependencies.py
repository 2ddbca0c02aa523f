"""
FastAPI dependencies.

Long-lived services are built once by the application lifespan and stored on
``app.state``; handlers reach them through these accessors.
"""

from decimal import Decimal
from typing import Optional

from fastapi import Request

from retail_scraper.services.job_trigger import JobTrigger
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore, to_rate
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator


def get_orchestrator(request: Request) -> ScrapeOrchestrator:
    return request.app.state.orchestrator


def get_rate_store(request: Request) -> ExchangeRateStore:
    return request.app.state.rate_store


def get_job_trigger(request: Request) -> JobTrigger:
    return request.app.state.job_trigger


async def resolve_rate(rate: Optional[str], store: ExchangeRateStore) -> Decimal:
    """
    Use the caller's rate, or the latest stored rate when none was given.

    Raises:
        InvalidInput: if the given rate is not a positive number
        NoRateAvailable: if no rate was given and none is stored
    """
    if rate is not None and rate.strip():
        return to_rate(rate.strip())
    return await store.get_latest_rate()
