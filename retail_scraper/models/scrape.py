"""
Scrape task and result data structures.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from retail_scraper.exceptions import InvalidInput


@dataclass(frozen=True)
class ScrapeTask:
    """
    One URL + rate unit of work for the browser pool.

    A ``None`` rate is priced with the latest stored rate at calculation time.
    """
    url: str
    rate: Optional[Decimal]


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one scrape task."""
    url: str
    success: bool
    title: Optional[str] = None
    price: Optional[str] = None
    image: Optional[str] = None
    calculated_price: Optional[str] = None
    retailer: Optional[str] = None
    size: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, url: str, error: str, retailer: Optional[str] = None) -> "ScrapeResult":
        return cls(url=url, success=False, error=error, retailer=retailer)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape, omitting fields that were not produced."""
        data = {
            "url": self.url,
            "title": self.title,
            "price": self.price,
            "image": self.image,
            "calculatedPrice": self.calculated_price,
            "retailer": self.retailer,
            "size": self.size,
            "success": self.success,
            "error": self.error,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class ScrapeBatch:
    """Results of a batch scrape, in input order."""
    results: List[ScrapeResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
        }


def normalize_urls(urls: Union[str, List[str], tuple, None]) -> List[str]:
    """
    Accept a single URL or a sequence and return a list of stripped URLs.

    Every entry of a sequence is kept so results line up one to one with the
    input.

    Raises:
        InvalidInput: if a sequence contains a blank entry
    """
    if urls is None:
        return []
    if isinstance(urls, str):
        urls = [urls] if urls.strip() else []

    cleaned = [url.strip() if isinstance(url, str) else "" for url in urls]
    if not all(cleaned):
        raise InvalidInput("URL is required")
    return cleaned
