"""Storefront gateway FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .log import configure_logging
from .models import EntityType
from .routers import (
    stats_router,
    catalog_router,
    changes_router,
)
from .services.container import CatalogServices, build_services

logger = logging.getLogger(__name__)


def _warm_cache_on_change(services: CatalogServices) -> None:
    """Reload an entity list shortly after it is invalidated."""

    async def reload(entity_type: EntityType) -> None:
        await services.store.load_all(entity_type)

    for entity_type in EntityType:
        services.refresher.on_data_updated(entity_type, reload)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[CatalogServices] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (services.settings if services else get_settings())
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await services.start()
        try:
            yield
        finally:
            await services.stop()

    app = FastAPI(
        title="Storefront Gateway",
        description="Cached catalog reads and change fan-out for the storefront",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.services = services
    _warm_cache_on_change(services)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers with /api prefix
    app.include_router(stats_router, prefix="/api")
    app.include_router(catalog_router, prefix="/api")
    app.include_router(changes_router, prefix="/api")

    return app


def run():
    """Run the server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Storefront gateway running at http://localhost:%s", settings.port)
    uvicorn.run(
        "storefront.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
