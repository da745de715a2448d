# gallerist/services/catalog.py
# Media Catalog: list every configured backend, keep media files, normalize,
# merge, sort newest first. A point-in-time snapshot; nothing is persisted.

from __future__ import annotations

import asyncio
import logging
import posixpath
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from gallerist.adapters.base import BackendAdapter, BackendSession
from gallerist.schemas.media import UNKNOWN_DATE, VIDEO_EXT, DirEntry, MediaItem
from gallerist.utils.http import clean_rel_path, media_url

LOGGER = logging.getLogger("gallerist.catalog")

DEFAULT_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".mp4", ".avi", ".mov"})


class CatalogCache:
    """
    Optional time-bounded memo of per-backend results, keyed by
    (backend, folder, recursive). ttl <= 0 disables it.
    """

    def __init__(self, ttl_seconds: float = 0):
        self.ttl = ttl_seconds
        self._data: Dict[Tuple[str, str, bool], Tuple[float, list[MediaItem]]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def get(self, key: Tuple[str, str, bool]) -> Optional[list[MediaItem]]:
        if not self.enabled:
            return None
        hit = self._data.get(key)
        if hit is None:
            return None
        stamp, items = hit
        if time.monotonic() - stamp > self.ttl:
            self._data.pop(key, None)
            return None
        return items

    def put(self, key: Tuple[str, str, bool], items: list[MediaItem]) -> None:
        if self.enabled:
            self._data[key] = (time.monotonic(), items)

    def clear(self) -> None:
        self._data.clear()


def is_media(name: str, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> bool:
    """`extensions` narrows DEFAULT_EXTENSIONS; anything outside it is never media."""
    ext = posixpath.splitext(name)[1].lower()
    return bool(ext) and ext in DEFAULT_EXTENSIONS and ext in extensions


def _as_utc(dt: Optional[datetime]):
    if dt is None:
        return UNKNOWN_DATE
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


async def _walk(conn: BackendSession, folder: str, recursive: bool) -> list[DirEntry]:
    entries = await conn.list(folder)
    if not recursive:
        return entries
    out: list[DirEntry] = []
    for e in entries:
        out.append(e)
        if e.is_dir:
            try:
                out.extend(await _walk(conn, e.path, recursive))
            except Exception as exc:
                LOGGER.warning("skipping unreadable folder %s: %s", e.path, exc)
    return out


async def _to_item(adapter: BackendAdapter, conn: BackendSession, entry: DirEntry) -> MediaItem:
    size, modified = entry.size, entry.modified
    if size is None or modified is None:
        try:
            st = await conn.stat(entry.path)
            size = st.size if size is None else size
            modified = st.modified if modified is None else modified
        except Exception as exc:
            LOGGER.warning("[%s] metadata unavailable for %s: %s", adapter.name, entry.path, exc,
                           extra={"backend": adapter.name})

    ext = posixpath.splitext(entry.name)[1].lower()
    return MediaItem(
        url=media_url(adapter.url_prefix, entry.path),
        name=entry.name,
        kind="video" if ext in VIDEO_EXT else "image",
        size=max(int(size or 0), 0),
        upload_date=_as_utc(modified),
        source_backend=adapter.name,
        original_path=entry.path,
    )


async def list_backend(
    adapter: BackendAdapter,
    folder: str = "",
    recursive: bool = False,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[MediaItem]:
    """Items from one backend. Raises whatever the adapter raises."""
    extensions = frozenset(extensions)
    async with adapter.connect() as conn:
        entries = await _walk(conn, folder, recursive)
        items: list[MediaItem] = []
        for entry in entries:
            if entry.is_dir or not is_media(entry.name, extensions):
                continue
            items.append(await _to_item(adapter, conn, entry))
        return items


async def _collect(adapter, folder, recursive, extensions, cache) -> list[MediaItem]:
    key = (adapter.name, folder, recursive)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached
    try:
        items = await list_backend(adapter, folder, recursive, extensions)
    except Exception as exc:
        # one backend down must not take the gallery with it
        LOGGER.warning("[%s] listing failed, contributing no items: %s", adapter.name, exc,
                       extra={"backend": adapter.name})
        return []
    if cache is not None:
        cache.put(key, items)
    return items


def sort_items(items: list[MediaItem]) -> list[MediaItem]:
    """Newest first; undated items after dated ones, in merge order."""
    return sorted(
        items,
        key=lambda i: (i.has_date, i.upload_date.timestamp() if i.has_date else 0.0),
        reverse=True,
    )


async def build_catalog(
    adapters: Iterable[BackendAdapter],
    folder: str = "",
    recursive: bool = False,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    cache: Optional[CatalogCache] = None,
) -> list[MediaItem]:
    folder = clean_rel_path(folder or "")
    adapters = list(adapters)
    results = await asyncio.gather(
        *(_collect(a, folder, recursive, extensions, cache) for a in adapters)
    )
    merged: list[MediaItem] = [item for chunk in results for item in chunk]
    LOGGER.debug("catalog: %d items from %d backends", len(merged), len(adapters))
    return sort_items(merged)
