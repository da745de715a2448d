# gallerist/services/uploads.py
# Upload/Folder Manager. Every entry point here runs after the access check.

from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, Mapping, Optional, Sequence

from fastapi import Request
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser

from gallerist.adapters.base import CHUNK_SIZE, BackendAdapter
from gallerist.core.errors import ForbiddenError, GalleryError, PayloadTooLargeError, ValidationError
from gallerist.utils.http import clean_rel_path, clean_segment, join_rel

LOGGER = logging.getLogger("gallerist.uploads")

# room for multipart boundaries and the small text fields next to the file
MULTIPART_OVERHEAD = 64 * 1024

UPLOAD_FIELDS = ("video", "file")


# ---------- request body cap ----------
class _BodyTooLarge(MultiPartException):
    """Raised from inside the parser so it closes the parts it already spooled."""


async def _capped_stream(request: Request, cap: int, limit_mb: int) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > cap:
            raise _BodyTooLarge(f"File too large (limit {limit_mb} MB).")
        yield chunk


async def read_upload_form(request: Request, limit_bytes: int, limit_mb: int) -> FormData:
    """
    Parse the form body while counting bytes as they arrive; an
    oversized body is refused from its Content-Length or as soon as the
    running total crosses the cap, never after buffering all of it.
    """
    cap = limit_bytes + MULTIPART_OVERHEAD
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > cap:
        raise PayloadTooLargeError(f"File too large (limit {limit_mb} MB).")

    content_type = request.headers.get("content-type", "").lower()
    stream = _capped_stream(request, cap, limit_mb)
    if content_type.startswith("multipart/form-data"):
        parser = MultiPartParser(request.headers, stream)
    elif content_type.startswith("application/x-www-form-urlencoded"):
        parser = FormParser(request.headers, stream)
    else:
        return FormData()

    try:
        return await parser.parse()
    except _BodyTooLarge as e:
        raise PayloadTooLargeError(e.message) from e
    except MultiPartException as e:
        raise ValidationError(e.message) from e


def pick_upload(form: FormData) -> UploadFile:
    for field in UPLOAD_FIELDS:
        value = form.get(field)
        if isinstance(value, UploadFile) and value.filename:
            return value
    raise ValidationError("No file uploaded.")


def upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    pos = file.file.tell()
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(pos)
    return size


async def _chunks(file: UploadFile) -> AsyncIterator[bytes]:
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


# ---------- backend selection ----------
def select_backends(
    adapters: Mapping[str, BackendAdapter],
    storage: Optional[str],
    default: Optional[Sequence[str]] = None,
) -> list[BackendAdapter]:
    """
    `storage` (form field) picks exactly one backend by name.
    Otherwise `default` names, or every configured backend when that is None.
    """
    if storage:
        adapter = adapters.get(storage.strip())
        if adapter is None:
            raise ValidationError(f"Unknown storage '{storage}'.")
        return [adapter]
    if default is None:
        return list(adapters.values())
    out = []
    for name in default:
        adapter = adapters.get(name)
        if adapter is None:
            raise ValidationError(f"Upload destination '{name}' is not configured.")
        out.append(adapter)
    if not out:
        raise ValidationError("No storage configured.")
    return out


# ---------- operations ----------
async def upload(
    file: UploadFile,
    destinations: Sequence[BackendAdapter],
    limit_bytes: int,
    folder: str = "",
) -> list[str]:
    """
    Write one uploaded file to every destination. Same name = overwrite.
    Returns the names of the backends written. Oversized files are refused
    before any backend is touched.
    """
    raw_name = (file.filename or "").replace("\\", "/").split("/")[-1]
    name = clean_segment(raw_name, "file")
    if upload_size(file) > limit_bytes:
        raise PayloadTooLargeError(f"File too large (limit {limit_bytes // (1024 * 1024)} MB).")

    try:
        target = clean_rel_path(folder or "")
    except ForbiddenError as e:
        raise ValidationError("folderName is not a valid folder.") from e
    path = join_rel(target, name)
    written = []
    for adapter in destinations:
        await file.seek(0)
        async with adapter.connect() as conn:
            await conn.write_stream(path, _chunks(file))
        LOGGER.info("[%s] uploaded %s (%d bytes)", adapter.name, path, upload_size(file),
                    extra={"backend": adapter.name})
        written.append(adapter.name)
    return written


async def create_folder(name: Optional[str], backends: Sequence[BackendAdapter]) -> list[str]:
    """
    Strict backends (local disk) go first and raise, so an existing local
    folder stops the request before any remote is touched. The rest are
    best-effort: failures are logged and left out of the result.
    """
    folder = clean_segment(name)
    ordered = sorted(backends, key=lambda a: not a.strict_folders)
    created: list[str] = []
    for adapter in ordered:
        if adapter.strict_folders:
            async with adapter.connect() as conn:
                await conn.make_directory(folder)
            created.append(adapter.name)
            continue
        try:
            async with adapter.connect() as conn:
                await conn.make_directory(folder)
            created.append(adapter.name)
        except Exception as exc:
            LOGGER.warning("[%s] create folder %s failed: %s", adapter.name, folder, exc,
                           extra={"backend": adapter.name})
    LOGGER.info("created folder %s on %s", folder, ", ".join(created) or "nothing")
    return created


async def delete_folder(name: Optional[str], backends: Sequence[BackendAdapter]) -> Dict[str, str]:
    """
    Recursive delete on each backend. One failure does not stop the others;
    only when every backend failed is the first error raised.
    """
    folder = clean_segment(name)
    outcome: Dict[str, str] = {}
    first_error: Optional[Exception] = None
    for adapter in backends:
        try:
            async with adapter.connect() as conn:
                await conn.remove_directory(folder, recursive=True)
            outcome[adapter.name] = "deleted"
        except Exception as exc:
            LOGGER.warning("[%s] delete folder %s failed: %s", adapter.name, folder, exc,
                           extra={"backend": adapter.name})
            outcome[adapter.name] = f"error: {exc}"
            if first_error is None:
                first_error = exc
    if first_error is not None and "deleted" not in outcome.values():
        if isinstance(first_error, GalleryError):
            raise first_error
        raise GalleryError(str(first_error)) from first_error
    LOGGER.info("deleted folder %s: %s", folder, outcome)
    return outcome
