"""
Retailer extraction profiles.

Each profile carries ordered fallback chains of CSS selectors for title, price
and image. Retailers redesign product pages often, so every chain lists
several plausible selectors and extraction accepts the first that yields
content.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlparse

from retail_scraper.exceptions import UnsupportedRetailer


class RetailerCategory(str, Enum):
    """Retailer category, drives markup policy."""
    PHARMACY = "pharmacy"
    GROCERY = "grocery"
    OFFICE = "office"
    GENERAL = "general"


@dataclass(frozen=True)
class RetailerProfile:
    """How to locate product fields on one retailer's product page."""

    name: str
    display_name: str
    domains: Tuple[str, ...]
    title_selectors: Tuple[str, ...]
    price_selectors: Tuple[str, ...]
    image_selectors: Tuple[str, ...]
    image_base_url: Optional[str] = None
    category: RetailerCategory = RetailerCategory.GENERAL
    ready_selector: Optional[str] = None
    extra_headers: Tuple[Tuple[str, str], ...] = ()

    def matches(self, url: str) -> bool:
        """Hostname substring match against the profile's domains."""
        hostname = _hostname(url)
        if not hostname:
            return False
        return any(domain in hostname for domain in self.domains)


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


CHEMIST_WAREHOUSE = RetailerProfile(
    name="chemist-warehouse",
    display_name="Chemist Warehouse",
    domains=("chemistwarehouse.com.au",),
    title_selectors=("h1.product-title", "h1", "title"),
    price_selectors=(
        ".product-price-now",
        ".product-price",
        ".Price",
        ".price",
        "[data-product-price]",
        "h2.display-l.text-colour-title-light",
    ),
    image_selectors=(
        "div.w-full.overflow-hidden button:nth-child(1) img",
        "img.product-image",
        "meta[property='og:image']",
    ),
    image_base_url="https://www.chemistwarehouse.com.au",
    category=RetailerCategory.PHARMACY,
)

COLES = RetailerProfile(
    name="coles",
    display_name="Coles",
    domains=("coles.com.au",),
    title_selectors=("h1.product__title", "h1", "title"),
    price_selectors=("span.price__value", ".price__value"),
    image_selectors=(
        'img[data-testid="product-thumbnail-image-0"]',
        "img.product-image",
        "meta[property='og:image']",
    ),
    image_base_url="https://shop.coles.com.au",
    category=RetailerCategory.GROCERY,
    ready_selector="h1",
)

WOOLWORTHS = RetailerProfile(
    name="woolworths",
    display_name="Woolworths",
    domains=("woolworths.com.au",),
    title_selectors=(
        "h1.product-title_component_product-title__azQKW",
        "h1.product-title",
        "h1",
        "title",
    ),
    price_selectors=(
        ".product-price_component_price-lead__vlm8f",
        ".product-price",
        ".Price",
        ".price",
        "[data-product-price]",
    ),
    image_selectors=(
        'img[fetchpriority="high"]',
        ".product-image-carousel_component_main-image__9Qe4H img",
        ".shelfProductTile-image img",
        "img.product-image",
        "meta[property='og:image']",
    ),
    image_base_url="https://www.woolworths.com.au",
    category=RetailerCategory.GROCERY,
    ready_selector="h1",
    extra_headers=(
        ("Accept-Language", "en-US,en;q=0.9"),
        ("Referer", "https://www.woolworths.com.au/"),
    ),
)

ALDI = RetailerProfile(
    name="aldi",
    display_name="Aldi",
    domains=("aldi.com.au",),
    title_selectors=(
        "h1.product-details__title",
        "h1.product-title",
        "h1.product-name",
        "title",
    ),
    price_selectors=(
        "span.base-price__regular span",
        "span.base-price__regular",
        "span.product-details__price",
        "span.price",
        "span.product-price",
        "span.current-price",
        "span[data-qa='product-price']",
        ".product-details__price",
    ),
    image_selectors=(
        "img.base-image.product-image__image",
        "img.product-details__image",
        "img.product-image",
        "meta[property='og:image']",
    ),
    image_base_url="https://www.aldi.com.au",
    category=RetailerCategory.GROCERY,
)

OFFICEWORKS = RetailerProfile(
    name="officeworks",
    display_name="Officeworks",
    domains=("officeworks.com.au",),
    title_selectors=(
        'h1[itemprop="name"]',
        "h1.product-title",
        "h1.sc-hKinHC",
        '[data-testid="product-title"]',
        "h1",
    ),
    price_selectors=('[data-testid="price"]', ".price-text", ".product-price__price"),
    image_selectors=(
        ".image-gallery-image img",
        ".product-image-main img",
        'img[loading="eager"]',
    ),
    image_base_url="https://www.officeworks.com.au",
    category=RetailerCategory.OFFICE,
    ready_selector='h1[itemprop="name"], h1.product-title',
)

DEFAULT_PROFILE = RetailerProfile(
    name="default",
    display_name="Generic",
    domains=(),
    title_selectors=("h1", "title"),
    price_selectors=(".price", ".product-price"),
    image_selectors=("img", "meta[property='og:image']"),
)

# First match wins
RETAILER_PROFILES: Tuple[RetailerProfile, ...] = (
    CHEMIST_WAREHOUSE,
    COLES,
    WOOLWORTHS,
    ALDI,
    OFFICEWORKS,
)

PROFILE_ALIASES = {
    "chemist": "chemist-warehouse",
    "chemistwarehouse": "chemist-warehouse",
}


def select_profile(url: str) -> RetailerProfile:
    """Pick the first profile matching the URL, or the default profile."""
    for profile in RETAILER_PROFILES:
        if profile.matches(url):
            return profile
    return DEFAULT_PROFILE


def get_profile(name: str) -> RetailerProfile:
    """
    Look up a retailer profile by slug.

    Raises:
        UnsupportedRetailer: for unknown slugs
    """
    slug = (name or "").strip().lower()
    slug = PROFILE_ALIASES.get(slug, slug)
    for profile in RETAILER_PROFILES:
        if profile.name == slug:
            return profile

    allowed = ", ".join(profile.name for profile in RETAILER_PROFILES)
    raise UnsupportedRetailer(f"Unsupported retailer '{name}'. Supported retailers: {allowed}")
