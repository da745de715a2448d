# gallerist/services/streaming.py
# Streaming Gateway: URL -> (adapter, path) -> full or partial response.
#
# The session used to stat the file stays open for the body and is closed
# when the body finishes, fails, or is abandoned by the client. A backend
# failure after headers went out is re-raised from the body iterator so the
# server aborts the connection instead of ending a short body cleanly.

from __future__ import annotations

import logging
import mimetypes
import re
from contextlib import AsyncExitStack
from typing import AsyncIterator, Mapping, Optional, Tuple

from fastapi.responses import StreamingResponse

from gallerist.adapters.base import BackendAdapter, BackendSession
from gallerist.core.errors import NotFoundError, RangeNotSatisfiableError
from gallerist.schemas.media import ByteRange
from gallerist.utils.http import clean_rel_path

LOGGER = logging.getLogger("gallerist.streaming")

mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("video/quicktime", ".mov")
mimetypes.add_type("video/x-msvideo", ".avi")

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


def content_type_for(path: str) -> str:
    return mimetypes.guess_type(path)[0] or "application/octet-stream"


def parse_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """
    Parse a single `bytes=` range against a file of `size` bytes.
    None when no header was sent. Anything unusable raises
    RangeNotSatisfiableError; out-of-bounds values are never clamped.
    """
    if header is None or not header.strip():
        return None
    m = _RANGE_RE.match(header)
    if not m:
        raise RangeNotSatisfiableError(size, f"Malformed range: {header}")
    start_s, end_s = m.groups()

    if not start_s and not end_s:
        raise RangeNotSatisfiableError(size, f"Malformed range: {header}")
    if not start_s:
        # suffix form: last N bytes
        n = int(end_s)
        if n == 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        if n > size:
            raise RangeNotSatisfiableError(size)
        return ByteRange(size - n, size - 1)

    start = int(start_s)
    end = int(end_s) if end_s else size - 1
    if start > end or start >= size or end >= size:
        raise RangeNotSatisfiableError(size)
    return ByteRange(start, end)


def resolve(adapters: Mapping[str, BackendAdapter], backend: str, url_path: str) -> Tuple[BackendAdapter, str]:
    """Map a routed request to the owning adapter and its backend-relative path."""
    adapter = adapters.get(backend)
    if adapter is None:
        raise NotFoundError(f"storage '{backend}' is not configured")
    rel = clean_rel_path(url_path)
    if not rel:
        raise NotFoundError()
    return adapter, rel


async def _body(stack: AsyncExitStack, conn: BackendSession, adapter: BackendAdapter,
                path: str, byte_range: Optional[ByteRange]) -> AsyncIterator[bytes]:
    try:
        async for chunk in conn.open_read_stream(path, byte_range):
            yield chunk
    except Exception:
        LOGGER.exception("[%s] stream of %s aborted", adapter.name, path, extra={"backend": adapter.name})
        raise
    finally:
        await stack.aclose()


async def stream(adapter: BackendAdapter, path: str, range_header: Optional[str] = None) -> StreamingResponse:
    stack = AsyncExitStack()
    try:
        conn = await stack.enter_async_context(adapter.connect())
        st = await conn.stat(path)
        if st.is_dir:
            raise NotFoundError()
        byte_range = parse_range(range_header, st.size)
    except BaseException:
        await stack.aclose()
        raise

    media_type = content_type_for(path)
    headers = {"Accept-Ranges": "bytes"}
    if byte_range is None:
        headers["Content-Length"] = str(st.size)
        status = 200
    else:
        headers["Content-Range"] = f"bytes {byte_range.start}-{byte_range.end}/{st.size}"
        headers["Content-Length"] = str(byte_range.length)
        status = 206

    return StreamingResponse(
        _body(stack, conn, adapter, path, byte_range),
        status_code=status,
        media_type=media_type,
        headers=headers,
    )
