# gallerist/api/routes/gallery.py
# Gallery routes:
# - GET /, GET /gallery     → HTML page of the live catalog
# - GET /api/gallery        → same catalog as JSON
# - GET /api/backends       → configured storages and their URL prefixes
from typing import Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from gallerist.adapters.base import BackendAdapter
from gallerist.api.deps import get_adapters, get_catalog_cache, get_settings
from gallerist.core.config import Settings
from gallerist.schemas.media import BackendInfo, MediaItem
from gallerist.services.catalog import CatalogCache, build_catalog
from gallerist.utils.render import render_gallery

api_router = APIRouter(tags=["gallery"])    # mounted under /api in main
public_router = APIRouter()                 # mounted without prefix in main


async def _catalog(folder: str, recursive: bool, settings: Settings,
                   adapters: Dict[str, BackendAdapter], cache: CatalogCache) -> List[MediaItem]:
    return await build_catalog(
        adapters.values(),
        folder=folder,
        recursive=recursive,
        extensions=settings.catalog.extensions,
        cache=cache,
    )


@api_router.get("/gallery", response_model=List[MediaItem])
async def gallery_json(
    folder: str = "",
    recursive: bool = False,
    settings: Settings = Depends(get_settings),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    return await _catalog(folder, recursive, settings, adapters, cache)


@api_router.get("/backends", response_model=List[BackendInfo])
def list_backends(adapters: Dict[str, BackendAdapter] = Depends(get_adapters)):
    return [BackendInfo(name=a.name, url_prefix=a.url_prefix) for a in adapters.values()]


@public_router.get("/", response_class=HTMLResponse)
@public_router.get("/gallery", response_class=HTMLResponse)
async def gallery_page(
    folder: str = "",
    recursive: bool = False,
    settings: Settings = Depends(get_settings),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    items = await _catalog(folder, recursive, settings, adapters, cache)
    return HTMLResponse(render_gallery(items, title=settings.server.title, backends=list(adapters)))
