"""Shared route dependencies."""

from fastapi import Request

from ..services.container import CatalogServices


def get_services(request: Request) -> CatalogServices:
    """Catalog services attached to the running app."""
    return request.app.state.services
