"""Catalog cache and change synchronization for the storefront."""

__version__ = "1.0.0"
