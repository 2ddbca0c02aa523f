"""
API routes initialization.
"""

from fastapi import APIRouter

from . import exchange_rates, health, jobs, scrape

# Create main router
router = APIRouter()

router.include_router(scrape.router, tags=["Scraping"])
router.include_router(exchange_rates.router, prefix="/api/exchange-rates", tags=["Exchange Rates"])
router.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])
router.include_router(health.router, tags=["Health"])
