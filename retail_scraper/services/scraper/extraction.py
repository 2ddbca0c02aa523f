"""
Product field extraction driven by retailer profiles.

One algorithm serves every retailer: parse the rendered page HTML, walk each
fallback chain in order and keep the first selector that yields content.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from retail_scraper.exceptions import ExtractionFailure
from retail_scraper.services.scraper.profiles import RetailerProfile

logger = structlog.get_logger(__name__)

OG_TITLE_SELECTOR = 'meta[property="og:title"]'
JSON_LD_SELECTOR = 'script[type="application/ld+json"]'
IMAGE_ATTRIBUTES = ("src", "data-src", "srcset", "content")

SIZE_PATTERNS = (
    re.compile(r"(Size|Pack)\s*(\d+|[\d.]+\s?(kg|g|ml|l))\b", re.IGNORECASE),
    re.compile(r"\b\d+(\.\d+)?\s?(kg|g|ml|l)\b", re.IGNORECASE),
)


@dataclass(frozen=True)
class ExtractedProduct:
    """Raw fields read off a product page."""
    title: Optional[str]
    price: str
    image: Optional[str]
    size: Optional[str] = None


def _select_one(soup: BeautifulSoup, selector: str) -> Optional[Tag]:
    try:
        return soup.select_one(selector)
    except SelectorSyntaxError as e:
        logger.warning("Invalid selector in profile", selector=selector, error=str(e))
        return None


def _element_text(element: Tag, separator: str = "") -> str:
    if element.name == "meta":
        return (element.get("content") or "").strip()
    text = element.get_text(separator, strip=True)
    return " ".join(text.split())


def normalize_image_url(src: str, base_url: Optional[str], page_url: str) -> str:
    """
    Turn protocol-relative and relative image URLs into absolute ones.

    Relative paths resolve against the retailer image base URL, or the page
    URL for retailers without one.
    """
    src = src.strip()
    if src.startswith("//"):
        return f"https:{src}"
    if src.startswith(("http://", "https://")):
        return src

    return urljoin(base_url or page_url, src)


class ProductExtractor:
    """Extracts title, price and image using a profile's fallback chains."""

    def __init__(self, profile: RetailerProfile):
        self.profile = profile

    def extract_text(self, soup: BeautifulSoup, selectors: Iterable[str], separator: str = "") -> Optional[str]:
        """Return the first non-empty text produced by the selector chain."""
        for selector in selectors:
            element = _select_one(soup, selector)
            if element is None:
                continue
            text = _element_text(element, separator)
            if text:
                return text
        return None

    def extract_image(self, soup: BeautifulSoup, page_url: str) -> Optional[str]:
        """Return the first image URL produced by the image chain, made absolute."""
        for selector in self.profile.image_selectors:
            element = _select_one(soup, selector)
            if element is None:
                continue
            src = self._image_source(element)
            if src:
                return normalize_image_url(src, self.profile.image_base_url, page_url)

        src = self._json_ld_image(soup)
        if src:
            return normalize_image_url(src, self.profile.image_base_url, page_url)
        return None

    @staticmethod
    def _image_source(element: Tag) -> Optional[str]:
        attributes = ("content",) if element.name == "meta" else IMAGE_ATTRIBUTES
        for attribute in attributes:
            value = (element.get(attribute) or "").strip()
            if not value or value.startswith("data:"):
                continue
            if attribute == "srcset":
                value = value.split(",")[0].strip().split(" ")[0]
            return value
        return None

    @staticmethod
    def _json_ld_image(soup: BeautifulSoup) -> Optional[str]:
        for script in soup.select(JSON_LD_SELECTOR):
            try:
                data = json.loads(script.string or "")
            except (TypeError, ValueError):
                continue
            image = _find_json_ld_image(data)
            if image:
                return image
        return None

    @staticmethod
    def extract_size(title: Optional[str]) -> Optional[str]:
        if not title:
            return None
        for pattern in SIZE_PATTERNS:
            match = pattern.search(title)
            if match:
                return match.group(0)
        return None

    def extract(self, html: str, page_url: str) -> ExtractedProduct:
        """
        Extract product fields from rendered page HTML.

        Raises:
            ExtractionFailure: if no price selector matched
        """
        soup = BeautifulSoup(html, "html.parser")

        title = self.extract_text(soup, self.profile.title_selectors, separator=" ")
        if not title:
            title = self.extract_text(soup, (OG_TITLE_SELECTOR,))

        price = self.extract_text(soup, self.profile.price_selectors)
        if not price:
            logger.warning("Price not found on page", url=page_url, retailer=self.profile.name)
            raise ExtractionFailure(page_url, "price")

        image = self.extract_image(soup, page_url)

        return ExtractedProduct(
            title=title,
            price=price,
            image=image,
            size=self.extract_size(title),
        )


def _find_json_ld_image(data: Any) -> Optional[str]:
    if isinstance(data, list):
        for item in data:
            found = _find_json_ld_image(item)
            if found:
                return found
        return None

    if not isinstance(data, dict):
        return None

    image = data.get("image")
    if isinstance(image, str) and image:
        return image
    if isinstance(image, list) and image:
        first = image[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict):
            return first.get("url")
    if isinstance(image, dict):
        return image.get("url")

    if "@graph" in data:
        return _find_json_ld_image(data["@graph"])
    return None
