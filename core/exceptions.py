class BarcodeUpdaterError(Exception):
    """Base class for errors raised by the barcode updater."""


class LookupTransportError(BarcodeUpdaterError):
    """The lookup site could not be reached or the request failed in transit.

    Distinct from a lookup that succeeded but found no description.
    """

    def __init__(self, barcode: str, reason: str):
        super().__init__(f"Lookup for barcode {barcode} failed: {reason}")
        self.barcode = barcode
        self.reason = reason


class ImageIngestError(BarcodeUpdaterError):
    """An image could not be downloaded, decoded, encoded or registered."""
