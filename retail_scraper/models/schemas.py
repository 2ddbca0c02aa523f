"""
Pydantic schemas for API request/response validation.
"""

from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Base schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        populate_by_name=True,
    )


# Scrape schemas
class ScrapeResultResponse(BaseSchema):
    """One scraped product."""
    url: str
    title: Optional[str] = None
    price: Optional[str] = None
    image: Optional[str] = None
    calculated_price: Optional[str] = Field(None, alias="calculatedPrice")
    retailer: Optional[str] = None
    size: Optional[str] = None
    success: bool
    error: Optional[str] = None


class ScrapeResponse(BaseSchema):
    """Batch scrape response with derived counts."""
    results: List[ScrapeResultResponse]
    total: int
    successful: int
    failed: int


class ErrorResponse(BaseSchema):
    """Error response schema."""
    error: str
    details: Optional[str] = None
    suggestion: Optional[str] = None


# Exchange rate schemas
class ExchangeRateCreate(BaseSchema):
    """Schema for recording a new exchange rate."""
    rate: Decimal = Field(..., gt=0)
    timestamp: Optional[datetime] = None


class ExchangeRateResponse(BaseSchema):
    """Schema for exchange rate response."""
    id: int
    from_currency: str
    to_currency: str
    rate: Decimal
    timestamp: datetime


# Background job schemas
class JobRequest(BaseSchema):
    """Schema for triggering a background scrape."""
    url: Optional[str] = None
    urls: Optional[List[str]] = None
    rate: Optional[Decimal] = Field(None, gt=0)

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v):
        if v is not None and not v:
            raise ValueError("urls must not be empty")
        return v

    def all_urls(self) -> List[str]:
        collected = list(self.urls or [])
        if self.url:
            collected.insert(0, self.url)
        return collected


class PriceUpdateRequest(BaseSchema):
    """Schema for an on-demand price update."""
    urls: Optional[List[str]] = None


class JobResponse(BaseSchema):
    """Schema for a queued background job."""
    success: bool
    message: str
    event: str
    count: int = 0
