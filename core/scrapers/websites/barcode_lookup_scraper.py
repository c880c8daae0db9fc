from core.scrapers.web_scraper_base import WebScraperBase
from core.scrapers.base import LookupResult
from config.settings import get_settings
from bs4 import BeautifulSoup
from typing import Optional
import re

# First product description container on the page, content may span lines
DESCRIPTION_PATTERN = re.compile(r'<div class="product-description">(.+?)</div>', re.S)

# First product image tag; the src attribute must directly follow the class
IMAGE_PATTERN = re.compile(r'<img class="product-image" src="(.+?)"', re.S)


def strip_markup(fragment: str) -> Optional[str]:
    """Return the text content of an HTML fragment, or None if it is blank."""
    text = BeautifulSoup(fragment, "lxml").get_text()
    text = text.strip()
    return text or None


class BarcodeLookupScraper(WebScraperBase):
    """Lookup client for barcodelookup.com product pages.

    Extraction works on the raw page text with regular expressions rather
    than a document parse. It is brittle against markup changes;
    BarcodeLookupSoupScraper is a drop-in alternative.
    """

    def __init__(self, url: Optional[str] = None, **kwargs):
        super().__init__("barcodelookup", url or get_settings().LOOKUP_BASE_URL, **kwargs)

    def extract(self, body: str) -> LookupResult:
        description = None
        match = DESCRIPTION_PATTERN.search(body)
        if match:
            description = strip_markup(match.group(1))

        image_url = None
        image_match = IMAGE_PATTERN.search(body)
        if image_match:
            image_url = image_match.group(1)

        self.logger.debug(
            "Extracted description=%s image_url=%s",
            (description or "")[:50], image_url,
        )
        return LookupResult(description=description, image_url=image_url)


class BarcodeLookupSoupScraper(WebScraperBase):
    """Lookup client for barcodelookup.com using a structural HTML parse."""

    def __init__(self, url: Optional[str] = None, **kwargs):
        super().__init__("barcodelookup-soup", url or get_settings().LOOKUP_BASE_URL, **kwargs)

    def extract(self, body: str) -> LookupResult:
        soup = BeautifulSoup(body, "lxml")

        description = None
        description_element = soup.select_one("div.product-description")
        if description_element:
            description = description_element.get_text().strip() or None

        image_url = None
        image_element = soup.select_one("img.product-image")
        if image_element and image_element.get("src"):
            image_url = image_element["src"]

        return LookupResult(description=description, image_url=image_url)
