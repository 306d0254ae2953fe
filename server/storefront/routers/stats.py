"""Health check endpoint."""

import platform
import sys
from fastapi import APIRouter, Depends

from .. import __version__
from ..services.container import CatalogServices
from .deps import get_services

router = APIRouter(tags=["stats"])


@router.get("/health")
async def health_check(services: CatalogServices = Depends(get_services)):
    """Health check and status endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "upstream": services.fetcher.base_url,
        "cacheTtl": services.cache.ttl,
        "cachedKeys": sorted(
            key for key in services.cache.keys() if services.cache.has(key)
        ),
        "channel": type(services.channel).__name__,
        "platform": platform.system().lower(),
        "pythonVersion": sys.version,
    }
