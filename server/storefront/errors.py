"""Exceptions raised by the catalog services."""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog sync errors."""


class FetchError(CatalogError):
    """Upstream request failed: network error, timeout or non-2xx status."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __repr__(self) -> str:
        return f"FetchError(status={self.status!r}, message={self.message!r})"


class InvalidPayload(CatalogError):
    """A response or stored record could not be decoded into the expected shape."""


class CacheMiss(CatalogError):
    """Key is absent or expired. Internal to TimedCache."""
