"""
In-memory stand-ins for the Playwright objects the browser pool drives.

The fake browser serves HTML from a URL map and records every context it
opens, so tests can assert on concurrency and cleanup without Chromium.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from retail_scraper.exceptions import PoolInitializationFailure
from retail_scraper.models.scrape import ScrapeResult, ScrapeTask

EMPTY_PAGE_HTML = "<html><head></head><body></body></html>"


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeRequest:
    def __init__(self, resource_type: str):
        self.resource_type = resource_type


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.url: Optional[str] = None
        self.default_timeout: Optional[float] = None

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self.browser.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})

        errors = self.browser.goto_errors.get(url)
        if errors:
            error = errors.pop(0)
            if error is not None:
                raise error

        if self.browser.delay:
            await asyncio.sleep(self.browser.delay)

        self.url = url
        return FakeResponse(self.browser.statuses.get(url, 200))

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None):
        self.browser.selector_waits.append(selector)
        return None

    async def content(self) -> str:
        return self.browser.pages.get(self.url, EMPTY_PAGE_HTML)


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: Dict[str, Any]):
        self.browser = browser
        self.options = options
        self.init_scripts: List[str] = []
        self.routes: List[Any] = []
        self.closed = False

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes.append((pattern, handler))

    async def new_page(self) -> FakePage:
        return FakePage(self.browser)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.browser.open_contexts -= 1


class FakeBrowser:
    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
    ):
        self.pages = dict(pages or {})
        self.delay = delay
        self.goto_errors: Dict[str, List[Optional[Exception]]] = {}
        self.statuses: Dict[str, int] = {}
        self.goto_calls: List[Dict[str, Any]] = []
        self.selector_waits: List[str] = []
        self.contexts: List[FakeContext] = []
        self.open_contexts = 0
        self.max_open_contexts = 0
        self.handlers: Dict[str, Callable] = {}
        self.connected = True
        self.closed = False

    def is_connected(self) -> bool:
        return self.connected and not self.closed

    def on(self, event: str, handler: Callable) -> None:
        self.handlers[event] = handler

    def disconnect(self) -> None:
        self.connected = False
        handler = self.handlers.get("disconnected")
        if handler:
            handler(self)

    async def new_context(self, **options) -> FakeContext:
        context = FakeContext(self, options)
        self.contexts.append(context)
        self.open_contexts += 1
        self.max_open_contexts = max(self.max_open_contexts, self.open_contexts)
        return context

    async def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, browser: FakeBrowser, launch_error: Optional[Exception] = None):
        self.browser = browser
        self.launch_error = launch_error
        self.launch_calls: List[Dict[str, Any]] = []

    async def launch(self, **options) -> FakeBrowser:
        self.launch_calls.append(options)
        if self.launch_error is not None:
            raise self.launch_error
        return self.browser


class FakePlaywright:
    def __init__(self, chromium: FakeChromium):
        self.chromium = chromium
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakePlaywrightManager:
    """Mimics the object returned by ``async_playwright()``."""

    def __init__(self, browser: FakeBrowser, launch_error: Optional[Exception] = None):
        self.chromium = FakeChromium(browser, launch_error)
        self.instances: List[FakePlaywright] = []

    async def start(self) -> FakePlaywright:
        playwright = FakePlaywright(self.chromium)
        self.instances.append(playwright)
        return playwright

    def __call__(self) -> "FakePlaywrightManager":
        return self


class StubPool:
    """Pool double returning canned results, for orchestrator and API tests."""

    def __init__(
        self,
        results: Optional[Dict[str, Any]] = None,
        delay: float = 0.0,
        init_error: Optional[PoolInitializationFailure] = None,
    ):
        self.results = dict(results or {})
        self.delay = delay
        self.init_error = init_error
        self.tasks: List[ScrapeTask] = []

    async def execute(self, task: ScrapeTask) -> ScrapeResult:
        self.tasks.append(task)
        if self.init_error is not None:
            raise self.init_error
        if self.delay:
            await asyncio.sleep(self.delay)

        outcome = self.results.get(task.url)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return ScrapeResult.failure(task.url, "Scraping failed: Failed to extract price from page")
        return outcome

    def stats(self) -> Dict[str, Any]:
        return {"running": False, "tasks": len(self.tasks)}

    async def shutdown(self, drain_timeout: Optional[float] = None) -> None:
        return None


def successful_result(url: str, price: str = "$10.00", calculated_price: str = "1855.00") -> ScrapeResult:
    return ScrapeResult(
        url=url,
        success=True,
        title="Test product",
        price=price,
        image="https://example.com/image.jpg",
        calculated_price=calculated_price,
    )
