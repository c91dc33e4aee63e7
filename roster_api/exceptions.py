"""
Custom exceptions for the roster API.

Error philosophy:
  - InvalidArgumentError → FAIL FAST: raised before any cache or network access.
  - NetworkError         → transport failure, not retried at the fetch layer.
  - FetchError           → network failed and the cache has nothing usable either.
  - ExtractionError      → a structural element the contract requires is absent.

Missing optional fields and upstream sentinel text are NOT errors; they are
normalized to empty/absent values by the extractor.
"""

from typing import Optional


class RosterAPIError(Exception):
    """Base exception for all roster API errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- FAIL FAST: bad caller input ---

class InvalidArgumentError(RosterAPIError):
    """
    Raised when a required argument is empty.

    Carries the name of the offending field so callers can report it
    without parsing the message.
    """

    def __init__(self, field: str, message: Optional[str] = None,
                 details: Optional[dict] = None):
        super().__init__(message or f"Empty {field}.", details)
        self.field = field


class InvalidKeyError(InvalidArgumentError):
    """Raised by the cache store when a cache key is empty."""

    def __init__(self, message: str = "Empty cache key.", details: Optional[dict] = None):
        super().__init__("key", message, details)


# --- Transport ---

class NetworkError(RosterAPIError):
    """Raised when the HTTP transport cannot complete a request."""

    def __init__(self, message: str, url: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.url = url


class FetchError(NetworkError):
    """
    Raised by the Fetcher when the network failed and no cached copy exists.

    The originating NetworkError is chained as ``__cause__``.
    """

    def __init__(self, message: str, url: str, key: str,
                 details: Optional[dict] = None):
        super().__init__(message, url, details)
        self.key = key


# --- Extraction ---

class ExtractionError(RosterAPIError):
    """
    Raised when a required structural element is missing from a page,
    e.g. the guild size on a roster page or an unknown statistic name.
    """
    pass
