"""API Routers for the storefront gateway."""

from .stats import router as stats_router
from .catalog import router as catalog_router
from .changes import router as changes_router

__all__ = [
    "stats_router",
    "catalog_router",
    "changes_router",
]
