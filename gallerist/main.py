# gallerist/main.py: only app wiring, no endpoints here.
#
# How to run:
#   pip install -e .
#   uvicorn gallerist.main:app --port 3000      (or just: gallerist)
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

# import routers
from gallerist.adapters.registry import build_adapters
from gallerist.api.routes import gallery, manage, media
from gallerist.core.config import Settings, load_settings
from gallerist.core.errors import GalleryError, gallery_error_handler
from gallerist.core.logging import setup_logging
from gallerist.services.catalog import CatalogCache

LOGGER = logging.getLogger("gallerist")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.local.enabled:
        settings.local.root.expanduser().mkdir(parents=True, exist_ok=True)
    LOGGER.info("backends: %s", ", ".join(app.state.adapters) or "none")
    if not settings.access.allowed_ip:
        LOGGER.warning("no allowed upload address configured; uploads and folder changes are disabled")
    yield


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Gallerist", version="0.1", lifespan=_lifespan)
    app.state.settings = settings
    app.state.adapters = build_adapters(settings)
    app.state.catalog_cache = CatalogCache(settings.catalog.cache_ttl_seconds)

    app.add_exception_handler(GalleryError, gallery_error_handler)

    # API routers
    app.include_router(gallery.api_router, prefix="/api")

    # public (non-API) routers: page, files, mutations
    app.include_router(gallery.public_router)   # / and /gallery
    app.include_router(manage.public_router)    # /upload, /create-folder, /delete-folder
    app.include_router(media.public_router)     # /local/*, /media/*, /nextcloud/*
    return app


_settings = load_settings()
setup_logging(_settings.logging)
app = create_app(_settings)


def run() -> None:
    """Console entry point: serve `app` on the configured host/port."""
    import uvicorn

    uvicorn.run(app, host=_settings.server.host, port=_settings.server.port, log_level="info")
