"""
Price Calculator for converting scraped retailer prices to local currency.

Applies the retailer category markup to the scraped base price, converts it
with the current exchange rate and rounds to a whole currency unit.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Awaitable, Callable, Dict, Optional, Union

import structlog

from retail_scraper.config.settings import get_settings
from retail_scraper.exceptions import (
    InvalidInput,
    InvalidPriceFormat,
    NoRateAvailable,
    PriceConversionFailed,
)
from retail_scraper.services.pricing.exchange_rates import to_rate
from retail_scraper.services.scraper.profiles import RetailerCategory, select_profile

logger = structlog.get_logger(__name__)

NON_NUMERIC = re.compile(r"[^0-9.]")
UNCONFIGURED_PRICE = "0.00"

RateProvider = Callable[[], Awaitable[Decimal]]


@dataclass(frozen=True)
class MarkupRule:
    """Tiered markup: ``high`` applies at or above ``threshold``."""
    threshold: Decimal
    low: Decimal
    high: Decimal

    def multiplier_for(self, base_price: Decimal) -> Decimal:
        return self.high if base_price >= self.threshold else self.low


def parse_price(raw_price: Optional[str]) -> Decimal:
    """
    Extract the numeric part of a currency-formatted price.

    Every character outside ``[0-9.]`` is stripped, so "$41.99", "AU$41.99"
    and "41.99" all parse to the same value.

    Raises:
        InvalidPriceFormat: if nothing numeric remains
    """
    if not isinstance(raw_price, str):
        raise InvalidPriceFormat(raw_price)

    numeric_part = NON_NUMERIC.sub("", raw_price)
    if not numeric_part:
        raise InvalidPriceFormat(raw_price)

    try:
        value = Decimal(numeric_part)
    except InvalidOperation:
        raise InvalidPriceFormat(raw_price)

    if not value.is_finite():
        raise InvalidPriceFormat(raw_price)
    return value


def format_price(value: Decimal) -> str:
    """Round to the nearest whole unit, then render with two decimals."""
    whole = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{whole:.2f}"


class PriceCalculator:
    """Calculator for localized retail prices."""

    def __init__(
        self,
        markup_rules: Optional[Dict[RetailerCategory, MarkupRule]] = None,
        rate_provider: Optional[RateProvider] = None,
    ):
        """
        Initialize the calculator.

        Args:
            markup_rules: Markup per retailer category. Categories without a
                rule are unconfigured and price to "0.00".
            rate_provider: Async callable returning the current rate, usually
                ``ExchangeRateStore.get_latest_rate``
        """
        if markup_rules is None:
            settings = get_settings()
            markup_rules = {
                RetailerCategory.PHARMACY: MarkupRule(
                    threshold=Decimal(settings.PHARMACY_MARKUP_THRESHOLD),
                    low=Decimal(settings.PHARMACY_MARKUP_LOW),
                    high=Decimal(settings.PHARMACY_MARKUP_HIGH),
                ),
            }
        self.markup_rules = markup_rules
        self.rate_provider = rate_provider

    def calculate(
        self,
        raw_price: str,
        source_url: str,
        rate: Union[Decimal, float, int, str],
    ) -> str:
        """
        Convert a scraped price into the local-currency price string.

        Args:
            raw_price: Scraped price such as "$41.99"
            source_url: Product page URL, used to pick the markup rule
            rate: Exchange rate to apply

        Returns:
            Price formatted with two decimals, e.g. "12894.00"

        Raises:
            PriceConversionFailed: on a malformed price or an unusable rate
        """
        try:
            base_price = parse_price(raw_price)
            exchange_rate = to_rate(rate)
        except (InvalidPriceFormat, InvalidInput) as e:
            logger.warning("Price conversion failed", url=source_url, raw_price=raw_price, error=e.message)
            raise PriceConversionFailed(source_url, e.message) from e

        profile = select_profile(source_url)
        rule = self.markup_rules.get(profile.category)
        if rule is None:
            logger.debug("No markup rule configured", url=source_url, category=profile.category.value)
            return UNCONFIGURED_PRICE

        multiplier = rule.multiplier_for(base_price)
        converted = base_price * multiplier * exchange_rate
        return format_price(converted)

    async def calculate_with_latest_rate(self, raw_price: str, source_url: str) -> str:
        """Calculate using the injected rate provider."""
        if self.rate_provider is None:
            raise PriceConversionFailed(source_url, "No exchange rate provider configured")

        try:
            rate = await self.rate_provider()
        except NoRateAvailable as e:
            raise PriceConversionFailed(source_url, e.message) from e

        return self.calculate(raw_price, source_url, rate)

