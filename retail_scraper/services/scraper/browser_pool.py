"""
Bounded Playwright browser pool.

One headless Chromium process serves every scrape. Each task gets its own
browser context, and a semaphore caps how many contexts are alive at once so
a batch of N URLs never opens more than ``MAX_CONCURRENT_CONTEXTS`` pages.
The pool is created and shut down by the application's composition root.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Route,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from retail_scraper.config.settings import Settings, get_settings
from retail_scraper.exceptions import (
    ExtractionFailure,
    NavigationFailure,
    PoolInitializationFailure,
    PriceConversionFailed,
    ScraperError,
)
from retail_scraper.models.scrape import ScrapeResult, ScrapeTask
from retail_scraper.services.pricing.calculator import PriceCalculator
from retail_scraper.services.scraper.extraction import ExtractedProduct, ProductExtractor
from retail_scraper.services.scraper.profiles import RetailerProfile, select_profile

logger = structlog.get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-accelerated-2d-canvas",
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
]

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', { get: () => ['en-AU', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""


class BrowserPool:
    """Executes scrape tasks on a bounded set of browser contexts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        calculator: Optional[PriceCalculator] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.settings = settings or get_settings()
        self.calculator = calculator or PriceCalculator()
        self.max_concurrency = self.settings.MAX_CONCURRENT_CONTEXTS
        self._playwright_factory = playwright_factory

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(self.max_concurrency)
        self._idle = asyncio.Condition()
        self._in_flight = 0
        self._closing = False

        # Resource accounting
        self.live_contexts = 0
        self.peak_contexts = 0
        self.tasks_completed = 0
        self.tasks_failed = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> None:
        """
        Launch the browser if it is not running yet.

        Safe to call concurrently: only the first caller launches, the rest
        wait on the lock and return. A browser that disconnected is relaunched.

        Raises:
            PoolInitializationFailure: if the browser cannot be launched
        """
        if self.is_running:
            return

        async with self._start_lock:
            if self.is_running:
                return
            if self._closing:
                raise PoolInitializationFailure("Browser pool is shut down")

            await self._release_browser()

            launch_options: Dict[str, Any] = {
                "headless": self.settings.BROWSER_HEADLESS,
                "args": LAUNCH_ARGS,
                "ignore_default_args": ["--enable-automation"],
                "timeout": self.settings.BROWSER_LAUNCH_TIMEOUT_MS,
            }
            if self.settings.BROWSER_EXECUTABLE_PATH:
                launch_options["executable_path"] = self.settings.BROWSER_EXECUTABLE_PATH

            try:
                self._playwright = await self._playwright_factory().start()
                self._browser = await self._playwright.chromium.launch(**launch_options)
            except Exception as e:
                logger.error(
                    "Failed to start browser",
                    error=str(e),
                    executable_path=self.settings.BROWSER_EXECUTABLE_PATH,
                )
                await self._release_browser()
                raise PoolInitializationFailure(str(e)) from e

            self._browser.on("disconnected", self._on_disconnected)
            logger.info(
                "Browser pool started",
                max_concurrency=self.max_concurrency,
                headless=self.settings.BROWSER_HEADLESS,
                executable_path=self.settings.BROWSER_EXECUTABLE_PATH or "bundled",
            )

    def _on_disconnected(self, *_: Any) -> None:
        logger.warning("Browser disconnected, will relaunch on next task")
        self._browser = None

    async def execute(self, task: ScrapeTask) -> ScrapeResult:
        """
        Scrape one URL and price the result.

        Navigation and extraction failures are retried with a fixed delay and
        then reported as a failed result. Price conversion failures are not
        retried. Only pool start-up failures raise.

        Raises:
            PoolInitializationFailure: if the browser cannot be started
        """
        if self._closing:
            raise PoolInitializationFailure("Browser pool is shutting down")

        profile = select_profile(task.url)
        async with self._track_in_flight():
            result = await self._execute_with_retry(task, profile)

        if result.success:
            self.tasks_completed += 1
        else:
            self.tasks_failed += 1
        return result

    async def _execute_with_retry(self, task: ScrapeTask, profile: RetailerProfile) -> ScrapeResult:
        attempts = 1 + max(0, self.settings.SCRAPE_RETRY_ATTEMPTS)
        last_error: Optional[ScraperError] = None

        for attempt in range(1, attempts + 1):
            await self.start()
            try:
                return await self._scrape_once(task, profile)
            except PriceConversionFailed as e:
                logger.warning("Price conversion failed", url=task.url, error=e.message)
                return ScrapeResult.failure(task.url, f"Scraping failed: {e.message}", retailer=profile.name)
            except (NavigationFailure, ExtractionFailure) as e:
                last_error = e
                logger.warning(
                    "Scrape attempt failed",
                    url=task.url,
                    retailer=profile.name,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=e.message,
                )
                if attempt < attempts:
                    await asyncio.sleep(self.settings.SCRAPE_RETRY_DELAY_SECONDS)

        logger.error("Scrape failed after retries", url=task.url, retailer=profile.name, error=last_error.message)
        return ScrapeResult.failure(task.url, f"Scraping failed: {last_error.message}", retailer=profile.name)

    async def extract(self, url: str) -> ExtractedProduct:
        """
        Load one page and extract its product fields, without pricing or retries.

        Used by the background step pipeline, which retries through Celery.

        Raises:
            NavigationFailure: if the page does not load
            ExtractionFailure: if no price selector matched
            PoolInitializationFailure: if the browser cannot be started
        """
        if self._closing:
            raise PoolInitializationFailure("Browser pool is shutting down")

        profile = select_profile(url)
        async with self._track_in_flight():
            await self.start()
            return await self._extract_once(url, profile)

    async def _extract_once(self, url: str, profile: RetailerProfile) -> ExtractedProduct:
        async with self._slots:
            html = await self._fetch_page_html(url, profile)
        return ProductExtractor(profile).extract(html, url)

    async def _scrape_once(self, task: ScrapeTask, profile: RetailerProfile) -> ScrapeResult:
        extracted = await self._extract_once(task.url, profile)
        if task.rate is None:
            calculated_price = await self.calculator.calculate_with_latest_rate(extracted.price, task.url)
        else:
            calculated_price = self.calculator.calculate(extracted.price, task.url, task.rate)

        logger.info(
            "Product scraped",
            url=task.url,
            retailer=profile.name,
            price=extracted.price,
            calculated_price=calculated_price,
        )
        return ScrapeResult(
            url=task.url,
            success=True,
            title=extracted.title,
            price=extracted.price,
            image=extracted.image,
            calculated_price=calculated_price,
            retailer=profile.name,
            size=extracted.size,
        )

    async def _fetch_page_html(self, url: str, profile: RetailerProfile) -> str:
        """Open a context, load the page and return its rendered HTML."""
        context = await self._open_context(url, profile)
        try:
            page = await context.new_page()
            page.set_default_timeout(self.settings.SELECTOR_TIMEOUT_MS)
            await self._navigate(page, url)
            await self._wait_until_ready(page, url, profile)
            await asyncio.sleep(self.settings.SETTLE_DELAY_SECONDS)
            return await page.content()
        except PlaywrightError as e:
            # Page or context detached mid-task
            raise NavigationFailure(url, str(e)) from e
        finally:
            await self._close_context(context)

    async def _open_context(self, url: str, profile: RetailerProfile) -> BrowserContext:
        browser = self._browser
        if browser is None:
            raise NavigationFailure(url, "browser is not running")

        try:
            context = await browser.new_context(
                user_agent=self.settings.BROWSER_USER_AGENT,
                locale=self.settings.BROWSER_LOCALE,
                timezone_id=self.settings.BROWSER_TIMEZONE,
                viewport={"width": 1920, "height": 1080},
                extra_http_headers=dict(profile.extra_headers) or None,
                java_script_enabled=True,
                ignore_https_errors=True,
            )
        except PlaywrightError as e:
            raise NavigationFailure(url, f"could not open browser context: {e}") from e

        self.live_contexts += 1
        self.peak_contexts = max(self.peak_contexts, self.live_contexts)

        try:
            await context.add_init_script(STEALTH_SCRIPT)
            if self.settings.BLOCK_HEAVY_RESOURCES:
                await context.route("**/*", self._route_request)
        except PlaywrightError as e:
            await self._close_context(context)
            raise NavigationFailure(url, f"could not configure browser context: {e}") from e
        return context

    async def _close_context(self, context: BrowserContext) -> None:
        try:
            await context.close()
        except PlaywrightError as e:
            logger.warning("Error closing browser context", error=str(e))
        finally:
            self.live_contexts -= 1

    @staticmethod
    async def _route_request(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def _navigate(self, page: Page, url: str) -> None:
        timeout = self.settings.NAVIGATION_TIMEOUT_MS
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationFailure(url, f"timed out after {timeout}ms") from e

        if response is not None and response.status >= 400:
            raise NavigationFailure(url, f"HTTP {response.status}")

    async def _wait_until_ready(self, page: Page, url: str, profile: RetailerProfile) -> None:
        if not profile.ready_selector:
            return
        try:
            await page.wait_for_selector(profile.ready_selector, timeout=self.settings.SELECTOR_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            logger.debug("Ready selector not found, extracting anyway", url=url, selector=profile.ready_selector)

    @asynccontextmanager
    async def _track_in_flight(self) -> AsyncIterator[None]:
        async with self._idle:
            self._in_flight += 1
        try:
            yield
        finally:
            async with self._idle:
                self._in_flight -= 1
                self._idle.notify_all()

    async def shutdown(self, drain_timeout: Optional[float] = None) -> None:
        """
        Stop accepting tasks, wait for in-flight tasks, then close the browser.

        Args:
            drain_timeout: Seconds to wait for in-flight tasks (None waits forever)
        """
        self._closing = True
        logger.info("Shutting down browser pool", in_flight=self._in_flight)

        try:
            async with self._idle:
                await asyncio.wait_for(
                    self._idle.wait_for(lambda: self._in_flight == 0),
                    timeout=drain_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning("Browser pool drain timed out", in_flight=self._in_flight)

        async with self._start_lock:
            await self._release_browser()
        logger.info("Browser pool closed", completed=self.tasks_completed, failed=self.tasks_failed)

    async def _release_browser(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.warning("Error closing browser", error=str(e))
        if playwright is not None:
            try:
                await playwright.stop()
            except PlaywrightError as e:
                logger.warning("Error stopping playwright", error=str(e))

    def stats(self) -> Dict[str, Any]:
        """Pool usage counters."""
        return {
            "running": self.is_running,
            "max_concurrency": self.max_concurrency,
            "live_contexts": self.live_contexts,
            "peak_contexts": self.peak_contexts,
            "in_flight": self._in_flight,
            "tasks_completed": self.tasks_completed,
            "tasks_failed": self.tasks_failed,
        }
