"""
Error taxonomy for the scraping and pricing pipeline.

Task-level errors (navigation, extraction, price conversion) are captured per
URL and reported as failed results. Only ``PoolInitializationFailure`` is
allowed to escalate to a request-level error.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for all pipeline errors."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ScraperError):
    """Missing or malformed URL or rate at the request boundary."""


class UnsupportedRetailer(ScraperError):
    """URL does not belong to the requested retailer."""


class NavigationFailure(ScraperError):
    """Page failed to load within the navigation timeout."""

    retryable = True

    def __init__(self, url: str, reason: str):
        super().__init__(f"Navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class ExtractionFailure(ScraperError):
    """Every selector of a required field's fallback chain came back empty."""

    retryable = True

    def __init__(self, url: str, field: str):
        super().__init__(f"Failed to extract {field} from page")
        self.url = url
        self.field = field


class InvalidPriceFormat(ScraperError):
    """Scraped price string has no parseable numeric part."""

    def __init__(self, raw_price: Optional[str]):
        super().__init__(f"Invalid price format: {raw_price!r}")
        self.raw_price = raw_price


class NoRateAvailable(ScraperError):
    """The exchange rate store holds no records."""

    def __init__(self, message: str = "No exchange rate available"):
        super().__init__(message)


class PriceConversionFailed(ScraperError):
    """Price could not be converted for a source URL. Never retried."""

    def __init__(self, source_url: str, reason: str):
        super().__init__(f"Price conversion failed for {source_url}: {reason}")
        self.source_url = source_url
        self.reason = reason


class PoolInitializationFailure(ScraperError):
    """The browser pool could not start. Fatal for the whole batch."""

    def __init__(self, reason: str, hint: Optional[str] = None):
        super().__init__(f"Browser initialization failed: {reason}")
        self.reason = reason
        self.hint = hint or diagnose_launch_error(reason)


def diagnose_launch_error(reason: str) -> str:
    """Map a browser launch error message onto an operator hint."""
    lowered = reason.lower()
    if "executable doesn't exist" in lowered or "executable_path" in lowered:
        return "Browser executable not found. Check the BROWSER_EXECUTABLE_PATH (CHROME_PATH) environment variable."
    if "timeout" in lowered:
        return "Browser launch timeout. Check system resources."
    return "Check that Chromium is installed (playwright install chromium) or that CHROME_PATH is set correctly."
