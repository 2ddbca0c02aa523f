"""
Exchange rate endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from retail_scraper.api.dependencies import get_rate_store
from retail_scraper.models.schemas import ExchangeRateCreate, ExchangeRateResponse
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore

router = APIRouter()


@router.get("/latest", response_model=ExchangeRateResponse)
async def get_latest_rate(store: ExchangeRateStore = Depends(get_rate_store)):
    """Get the authoritative (most recently timestamped) rate."""
    return await store.get_latest_record()


@router.post("", response_model=ExchangeRateResponse, status_code=status.HTTP_201_CREATED)
async def record_rate(
    payload: ExchangeRateCreate,
    store: ExchangeRateStore = Depends(get_rate_store),
):
    """Append a new rate. Earlier rates are kept for auditing."""
    return await store.record(payload.rate, timestamp=payload.timestamp)


@router.get("", response_model=List[ExchangeRateResponse])
async def list_rates(
    limit: int = Query(50, ge=1, le=500, description="Number of records, newest first"),
    store: ExchangeRateStore = Depends(get_rate_store),
):
    return await store.history(limit=limit)
