# This file defines the abstract base class for all barcode lookup clients
# The batch loop only talks to this interface, so the extraction strategy behind it can change freely

import abc
from dataclasses import dataclass
from typing import Optional


@dataclass
class LookupResult:
    """What a lookup found for one barcode.

    Either field may be None. A result without a description is treated by
    the batch loop as a failed lookup; a result without an image URL still
    leads to a description-only update.
    """
    description: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.description)


class BaseLookupClient(abc.ABC):
    """Base class for barcode lookup sources.

    Concrete clients turn a barcode into a LookupResult. Transport problems
    are reported by raising LookupTransportError so that callers can tell
    "site unreachable" apart from "barcode not found".
    """

    def __init__(self, name: str, url: str):
        """Initialize the client with a name and base URL.

        Args:
            name: Identifier of this lookup source, used in logger names
            url: Base URL the barcode is appended to
        """
        self.name = name
        self.url = url

    def build_url(self, barcode: str) -> str:
        """Embed the barcode into the lookup path.

        The barcode is inserted as-is without URL-encoding.
        """
        return f"{self.url.rstrip('/')}/{barcode}"

    @abc.abstractmethod
    def lookup(self, barcode: str) -> LookupResult:
        """Look up a barcode.

        Returns:
            LookupResult with description and image URL, either possibly None

        Raises:
            LookupTransportError: if the lookup site could not be queried
        """
        raise NotImplementedError("Concrete lookup clients must implement lookup()")
