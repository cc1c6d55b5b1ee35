"""
Error taxonomy for the live-update engine.

Record-level parse failures never surface as exceptions; the normalizer absorbs
them. Upstream failures are raised by the HTTP client and the polling
controller, and translated into user-facing messages or HTTP status codes by
the API layer.
"""

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to the upstream dashboard API."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class FetchTimeout(UpstreamError):
    """The upstream call exceeded its time bound. Retryable."""


class FetchError(UpstreamError):
    """Non-timeout transport or HTTP failure. Not retried automatically."""


class NoUsableFiltersError(ValueError):
    """Raised when a refresh has neither valid current filters nor a previously applied set."""
