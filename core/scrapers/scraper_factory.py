from typing import Dict, Type
import logging
from core.scrapers.base import BaseLookupClient
from core.scrapers.websites.static_scraper import StaticLookupClient
from core.scrapers.websites.barcode_lookup_scraper import (
    BarcodeLookupScraper,
    BarcodeLookupSoupScraper,
)

logger = logging.getLogger("scraper.factory")


class ScraperFactory:
    """Factory for creating the configured barcode lookup client.

    The batch loop only depends on BaseLookupClient, so switching between
    the regex extractor and the structural parser is a configuration change.
    """

    # Map of parser names to lookup client classes
    CLIENTS: Dict[str, Type[BaseLookupClient]] = {
        "regex": BarcodeLookupScraper,
        "soup": BarcodeLookupSoupScraper,
        "static": StaticLookupClient,
    }

    @classmethod
    def create_client(cls, kind: str = "regex", **kwargs) -> BaseLookupClient:
        """Create and return a lookup client.

        Args:
            kind: Name of the client (must be in CLIENTS)
            **kwargs: Additional keyword arguments for the client

        Unknown kinds fall back to the regex client with a warning.
        """
        if kind not in cls.CLIENTS:
            logger.warning("Unknown lookup parser '%s', using regex instead", kind)
            kind = "regex"

        return cls.CLIENTS[kind](**kwargs)
