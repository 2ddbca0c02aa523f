"""
Retail Price Scraper API

FastAPI application that scrapes Australian retailer product pages and prices
them in LKR.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retail_scraper.api import router
from retail_scraper.config.celery import celery_app
from retail_scraper.config.database import (
    close_database,
    get_engine,
    get_session_factory,
    init_database,
)
from retail_scraper.config.settings import Settings, get_settings
from retail_scraper.exceptions import (
    InvalidInput,
    NoRateAvailable,
    PoolInitializationFailure,
    PriceConversionFailed,
    UnsupportedRetailer,
)
from retail_scraper.services.job_trigger import JobTrigger
from retail_scraper.services.pricing.exchange_rates import ExchangeRateStore
from retail_scraper.services.scraper.browser_pool import BrowserPool
from retail_scraper.services.scraper.orchestrator import ScrapeOrchestrator
from retail_scraper.utils.logging import clear_correlation_id, configure_logging, set_correlation_id

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
POOL_DRAIN_TIMEOUT_SECONDS = 60


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the long-lived services on startup and release them on shutdown."""
    settings = get_settings()
    configure_logging()

    engine = get_engine()
    await init_database(engine)

    rate_store = ExchangeRateStore(get_session_factory())
    pool = BrowserPool(settings)

    app.state.engine = engine
    app.state.rate_store = rate_store
    app.state.pool = pool
    app.state.orchestrator = ScrapeOrchestrator(pool)
    app.state.job_trigger = JobTrigger(celery_app)

    logger.info("Application started", environment=settings.ENVIRONMENT, version=settings.app_version)
    try:
        yield
    finally:
        await pool.shutdown(drain_timeout=POOL_DRAIN_TIMEOUT_SECONDS)
        await close_database()
        logger.info("Application stopped")


def _error(status_code: int, error: str, details: Optional[str] = None, suggestion: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details:
        body["details"] = details
    if suggestion:
        body["suggestion"] = suggestion
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Map pipeline errors onto HTTP responses."""

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(UnsupportedRetailer)
    async def unsupported_retailer_handler(request: Request, exc: UnsupportedRetailer):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(NoRateAvailable)
    async def no_rate_handler(request: Request, exc: NoRateAvailable):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            exc.message,
            suggestion="Pass a rate parameter or record a rate with POST /api/exchange-rates",
        )

    @app.exception_handler(PriceConversionFailed)
    async def price_conversion_handler(request: Request, exc: PriceConversionFailed):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(PoolInitializationFailure)
    async def pool_failure_handler(request: Request, exc: PoolInitializationFailure):
        logger.error("Browser pool unavailable", reason=exc.reason, path=request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Browser initialization failed.",
            details=exc.reason,
            suggestion=exc.hint,
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.app_version,
        description="Retail product scraping and LKR price conversion",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint with welcome message."""
        return {
            "message": f"Welcome to {settings.PROJECT_NAME}",
            "version": settings.app_version,
            "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("retail_scraper.main:app", host="0.0.0.0", port=8000, reload=get_settings().DEBUG)
