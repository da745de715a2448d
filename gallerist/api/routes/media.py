# gallerist/api/routes/media.py
# Public file routes, one per backend prefix; all support Range:
# - GET /local/{path}       → local disk
# - GET /media/{path}       → SFTP
# - GET /nextcloud/{path}   → Nextcloud
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Header

from gallerist.adapters.base import BackendAdapter
from gallerist.api.deps import get_adapters
from gallerist.services.streaming import resolve, stream

public_router = APIRouter(tags=["media"])


async def _serve(adapters: Dict[str, BackendAdapter], backend: str, path: str, range_header: Optional[str]):
    adapter, rel = resolve(adapters, backend, path)
    return await stream(adapter, rel, range_header)


@public_router.get("/local/{path:path}")
async def get_local_media(
    path: str,
    range_header: Optional[str] = Header(None, alias="range"),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
):
    return await _serve(adapters, "local", path, range_header)


@public_router.get("/media/{path:path}")
async def get_sftp_media(
    path: str,
    range_header: Optional[str] = Header(None, alias="range"),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
):
    return await _serve(adapters, "sftp", path, range_header)


@public_router.get("/nextcloud/{path:path}")
async def get_nextcloud_media(
    path: str,
    range_header: Optional[str] = Header(None, alias="range"),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
):
    return await _serve(adapters, "nextcloud", path, range_header)
