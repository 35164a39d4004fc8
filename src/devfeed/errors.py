"""Exception taxonomy for devfeed."""

from __future__ import annotations


class DevFeedError(Exception):
    """Base class for all devfeed errors."""


class ConfigError(DevFeedError):
    """Configuration is invalid (bad type, bad value, missing required field)."""


class FetchError(DevFeedError):
    """A provider fetch failed. ``detail`` is what follows ``error: `` in the status."""

    @property
    def detail(self) -> str:
        return str(self)


class HTTPStatusError(FetchError):
    """Non-2xx response from a provider."""

    def __init__(self, code: int, reason: str = ""):
        self.code = code
        self.reason = reason
        message = f"HTTP {code}"
        if reason:
            message += f" {reason}"
        super().__init__(message)


class PayloadError(FetchError):
    """Response body could not be parsed (invalid JSON or XML)."""


class InvalidSourceURL(FetchError):
    """Source URL does not have the shape the provider needs. Raised before any request."""
