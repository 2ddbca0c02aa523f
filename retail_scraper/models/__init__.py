"""Database models and data structures package."""

from retail_scraper.config.database import Base
from .exchange_rate import ExchangeRate
from .scrape import ScrapeTask, ScrapeResult, ScrapeBatch

__all__ = [
    "Base",
    "ExchangeRate",
    "ScrapeTask",
    "ScrapeResult",
    "ScrapeBatch",
]
