import requests
from typing import Optional
import logging
from config.settings import get_settings
from core.exceptions import LookupTransportError
from core.scrapers.base import BaseLookupClient, LookupResult


class WebScraperBase(BaseLookupClient):
    """Base class for lookup clients that fetch pages from a website.

    Adds an HTTP session carrying a browser-like User-Agent, since the
    lookup site blocks obvious bots, and turns network errors into
    LookupTransportError.
    """

    def __init__(self, name: str, url: str, user_agent: Optional[str] = None,
                 timeout: Optional[float] = None):
        """Initialize the web scraper.

        Args:
            name: Unique identifier for this lookup source
            url: Base URL of the lookup site
            user_agent: Optional custom user agent string
            timeout: Request timeout in seconds
        """
        super().__init__(name, url)
        settings = get_settings()
        self.user_agent = user_agent or settings.LOOKUP_USER_AGENT
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": self.user_agent,
        })
        self.logger = logging.getLogger(f"scraper.{name}")

    def fetch(self, url: str) -> str:
        """Fetch a page and return its body.

        The HTTP status is not checked: an error page is returned like any
        other body and simply yields nothing during extraction.

        Raises:
            requests.exceptions.RequestException: if the request fails
        """
        self.logger.info("Fetching %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.error("Error fetching %s: %s", url, str(e))
            raise

        self.logger.debug("Got HTTP %s from %s", response.status_code, url)
        return response.text

    def lookup(self, barcode: str) -> LookupResult:
        try:
            body = self.fetch(self.build_url(barcode))
        except requests.exceptions.RequestException as e:
            raise LookupTransportError(barcode, str(e)) from e
        return self.extract(body)

    def extract(self, body: str) -> LookupResult:
        """Pull the description and image URL out of a page body.

        This should be implemented by subclasses for their parsing strategy.
        """
        raise NotImplementedError("WebScraperBase.extract() must be implemented by subclasses")
