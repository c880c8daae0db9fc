from collections import deque

from core.scrapers.base import BaseLookupClient, LookupResult


class StaticLookupClient(BaseLookupClient):
    """A lookup client that answers from fixed data (for testing and dry runs)."""

    DEFAULT_RESULTS = {
        "012345678905": LookupResult(
            description="Wireless Mouse",
            image_url="http://example.com/images/mouse.jpg",
        ),
        "036000291452": LookupResult(
            description="USB-C Charging Cable, 1m",
            image_url=None,
        ),
        "5901234123457": LookupResult(
            description="HDMI Cable 2.0, 2m",
            image_url="http://example.com/images/hdmi-cable.png",
        ),
    }

    # Most recent barcodes kept in self.calls
    MAX_RECORDED_CALLS = 100

    def __init__(self, name: str = "static", url: str = "http://example.com", results=None):
        super().__init__(name, url)
        self.results = dict(self.DEFAULT_RESULTS if results is None else results)
        self.calls = deque(maxlen=self.MAX_RECORDED_CALLS)

    def lookup(self, barcode: str) -> LookupResult:
        """Return the canned result for a barcode, or an empty result."""
        self.calls.append(barcode)
        return self.results.get(barcode, LookupResult())
