"""
Exceptions raised by the crawler.

Per-link failures are handled inside the traversal and never reach the caller;
these are what surfaces for the root page and for output serialization.
"""
from __future__ import annotations


class KrawlerError(Exception):
    """Base class for all crawler errors."""


class InvalidURLError(KrawlerError, ValueError):
    """A URL string could not be parsed into an absolute URL."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Invalid URL: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class TransportError(KrawlerError):
    """The root page could not be reached (connection, TLS, DNS, timeout)."""


class UnsupportedContentTypeError(KrawlerError):
    """The root page is not an HTML document."""

    def __init__(self, url: str, content_type: str) -> None:
        self.url = url
        self.content_type = content_type
        super().__init__(
            f"Supplied link is not an html document (expected text/html, got {content_type or 'nothing'})"
        )


class SerializationError(KrawlerError):
    """Structured output could not be encoded."""
