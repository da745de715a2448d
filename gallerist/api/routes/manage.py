# gallerist/api/routes/manage.py
# Mutating routes, all behind the access policy (checked before the body is read):
# - POST /upload          multipart: video|file, optional storage, folderName
# - POST /create-folder   form: folderName, optional storage
# - POST /delete-folder   form: folderName, optional storage
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import PlainTextResponse

from gallerist.adapters.base import BackendAdapter
from gallerist.api.deps import get_adapters, get_catalog_cache, get_settings
from gallerist.core.config import Settings
from gallerist.core.security import require_allowed
from gallerist.services import uploads
from gallerist.services.catalog import CatalogCache

public_router = APIRouter(tags=["manage"], dependencies=[Depends(require_allowed)])


def _text(form_value) -> Optional[str]:
    return form_value if isinstance(form_value, str) else None


@public_router.post("/upload", response_class=PlainTextResponse)
async def upload_file(
    request: Request,
    settings: Settings = Depends(get_settings),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    limit = settings.upload.limit_bytes
    form = await uploads.read_upload_form(request, limit, settings.upload.limit_mb)
    try:
        file = uploads.pick_upload(form)
        destinations = uploads.select_backends(
            adapters, _text(form.get("storage")), settings.upload.destinations
        )
        await uploads.upload(file, destinations, limit, folder=_text(form.get("folderName")) or "")
    finally:
        await form.close()
    cache.clear()
    return PlainTextResponse("File uploaded successfully.")


@public_router.post("/create-folder", response_class=PlainTextResponse)
async def create_folder(
    folderName: Optional[str] = Form(None),
    storage: Optional[str] = Form(None),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    backends = uploads.select_backends(adapters, storage)
    await uploads.create_folder(folderName, backends)
    cache.clear()
    return PlainTextResponse("Folder created successfully.")


@public_router.post("/delete-folder", response_class=PlainTextResponse)
async def delete_folder(
    folderName: Optional[str] = Form(None),
    storage: Optional[str] = Form(None),
    adapters: Dict[str, BackendAdapter] = Depends(get_adapters),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    backends = uploads.select_backends(adapters, storage)
    await uploads.delete_folder(folderName, backends)
    cache.clear()
    return PlainTextResponse("Folder deleted successfully.")
