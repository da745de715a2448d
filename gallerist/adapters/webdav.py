# gallerist/adapters/webdav.py
# Nextcloud (WebDAV) backend over httpx.
#
# Listings are PROPFIND Depth: 1 multistatus documents, parsed with
# ElementTree against the DAV: namespace. Each <d:response> is parsed on its
# own: a broken one is logged and skipped, the rest of the listing survives.
#
# Folder semantics: MKCOL on an existing collection (405) is a silent success;
# DELETE on a collection is recursive by nature.

from __future__ import annotations

import logging
import posixpath
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import AsyncIterable, AsyncIterator, Optional
from urllib.parse import quote, unquote, urlsplit

import httpx

from gallerist.adapters.base import CHUNK_SIZE, BackendAdapter, BackendSession
from gallerist.core.config import NextcloudSettings
from gallerist.core.errors import BackendConnectionError, NotFoundError, ValidationError
from gallerist.schemas.media import ByteRange, DirEntry, FileStat
from gallerist.utils.http import clean_rel_path, join_rel

LOGGER = logging.getLogger("gallerist.adapters.webdav")

DAV_NS = "DAV:"
_NS = {"d": DAV_NS}

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    "<d:getlastmodified/><d:getcontentlength/><d:resourcetype/>"
    "</d:prop></d:propfind>"
)


@dataclass(frozen=True)
class DavResource:
    path: str               # decoded absolute server path, no trailing slash
    is_dir: bool
    size: Optional[int]
    modified: Optional[datetime]


def _parse_http_date(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        dt = parsedate_to_datetime(text.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _ok_prop(response: ET.Element) -> Optional[ET.Element]:
    """The <d:prop> of the first propstat whose status is 200."""
    for propstat in response.findall("d:propstat", _NS):
        status = (propstat.findtext("d:status", default="", namespaces=_NS) or "").split()
        if len(status) >= 2 and status[1] == "200":
            return propstat.find("d:prop", _NS)
    return None


def _parse_response(response: ET.Element) -> DavResource:
    href = response.findtext("d:href", namespaces=_NS)
    if not href or not href.strip():
        raise ValueError("response without href")
    path = unquote(urlsplit(href.strip()).path).rstrip("/") or "/"

    prop = _ok_prop(response)
    if prop is None:
        raise ValueError(f"no 200 propstat for {path}")

    rtype = prop.find("d:resourcetype", _NS)
    is_dir = rtype is not None and rtype.find("d:collection", _NS) is not None

    size: Optional[int] = None
    length = prop.findtext("d:getcontentlength", namespaces=_NS)
    if length and length.strip():
        size = int(length.strip())
        if size < 0:
            raise ValueError(f"negative content length for {path}")

    modified = _parse_http_date(prop.findtext("d:getlastmodified", namespaces=_NS))
    return DavResource(path=path, is_dir=is_dir, size=size, modified=modified)


def parse_multistatus(body: bytes) -> list[DavResource]:
    """
    Parse a 207 Multi-Status body. Raises BackendConnectionError if the
    document is not XML at all; individual bad <d:response> elements are skipped.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise BackendConnectionError(f"invalid PROPFIND response: {e}") from e
    if root.tag != f"{{{DAV_NS}}}multistatus":
        raise BackendConnectionError(f"unexpected PROPFIND root element {root.tag}")

    out: list[DavResource] = []
    for response in root.findall("d:response", _NS):
        try:
            out.append(_parse_response(response))
        except ValueError as e:
            LOGGER.warning("skipping malformed WebDAV entry: %s", e)
    return out


class WebDavSession(BackendSession):
    def __init__(self, cfg: NextcloudSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cfg = cfg
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        base = f"{cfg.url.rstrip('/')}/remote.php/dav/files/{quote(cfg.username, safe='')}"
        root = clean_rel_path(cfg.root or "/")
        self._root_url = f"{base}/{quote(root)}" if root else base

    # ---- helpers ----
    def _url(self, path: str) -> str:
        rel = clean_rel_path(path)
        return f"{self._root_url}/{quote(rel)}" if rel else self._root_url

    def _server_path(self, path: str) -> str:
        return unquote(urlsplit(self._url(path)).path).rstrip("/") or "/"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise BackendConnectionError("webdav session is not open")
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self.client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            raise BackendConnectionError(f"nextcloud {method} {path or '/'} failed: {e}") from e
        if resp.status_code in (401, 403):
            raise BackendConnectionError(f"nextcloud refused credentials ({resp.status_code})")
        if resp.status_code == 404:
            raise NotFoundError(f"not found on nextcloud: {path or '/'}")
        return resp

    async def _propfind(self, path: str, depth: str) -> list[DavResource]:
        resp = await self._request(
            "PROPFIND", path,
            content=PROPFIND_BODY,
            headers={"Depth": depth, "Content-Type": "application/xml; charset=utf-8"},
        )
        if resp.status_code != 207:
            raise BackendConnectionError(f"PROPFIND {path or '/'} returned {resp.status_code}")
        return parse_multistatus(resp.content)

    # ---- session ----
    async def open(self) -> None:
        self._client = httpx.AsyncClient(
            auth=(self.cfg.username, self.cfg.password),
            timeout=self.cfg.timeout,
            transport=self._transport,
        )
        try:
            await self._propfind("", "0")
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list(self, path: str) -> list[DirEntry]:
        resources = await self._propfind(path, "1")
        self_path = self._server_path(path)
        rel_dir = clean_rel_path(path)

        out: list[DirEntry] = []
        for r in resources:
            if r.path == self_path:
                continue
            if posixpath.dirname(r.path) != self_path:
                LOGGER.warning("skipping WebDAV entry outside %s: %s", self_path, r.path)
                continue
            name = posixpath.basename(r.path)
            out.append(DirEntry(
                name=name,
                path=join_rel(rel_dir, name),
                is_dir=r.is_dir,
                size=None if r.is_dir else r.size,
                modified=r.modified,
            ))
        out.sort(key=lambda e: e.name)
        return out

    async def stat(self, path: str) -> FileStat:
        resources = await self._propfind(path, "0")
        if not resources:
            raise NotFoundError(f"not found on nextcloud: {path}")
        r = resources[0]
        return FileStat(size=r.size or 0, modified=r.modified, is_dir=r.is_dir)

    async def open_read_stream(self, path: str, byte_range: Optional[ByteRange] = None) -> AsyncIterator[bytes]:
        headers = {}
        if byte_range is not None:
            headers["Range"] = f"bytes={byte_range.start}-{byte_range.end}"
        try:
            async with self.client.stream("GET", self._url(path), headers=headers) as resp:
                if resp.status_code == 404:
                    raise NotFoundError(f"not found on nextcloud: {path}")
                if resp.status_code not in (200, 206):
                    raise BackendConnectionError(f"GET {path} returned {resp.status_code}")

                # server ignored Range: cut the span out ourselves
                skip = byte_range.start if (byte_range and resp.status_code == 200) else 0
                remaining = byte_range.length if byte_range else None
                async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                    if skip:
                        if len(chunk) <= skip:
                            skip -= len(chunk)
                            continue
                        chunk = chunk[skip:]
                        skip = 0
                    if remaining is not None:
                        chunk = chunk[:remaining]
                        remaining -= len(chunk)
                    if chunk:
                        yield chunk
                    if remaining == 0:
                        break
        except httpx.HTTPError as e:
            raise BackendConnectionError(f"nextcloud stream {path} failed: {e}") from e

    async def _mkcol(self, path: str) -> bool:
        """MKCOL; True when created, False when it already existed."""
        resp = await self._request("MKCOL", path)
        if resp.status_code == 201:
            return True
        if resp.status_code == 405:
            return False
        if resp.status_code == 409:
            raise NotFoundError(f"parent collection missing for {path}")
        raise BackendConnectionError(f"MKCOL {path} returned {resp.status_code}")

    async def write_stream(self, path: str, chunks: AsyncIterable[bytes]) -> None:
        rel = clean_rel_path(path)
        parts = rel.split("/")[:-1]
        for i in range(len(parts)):
            await self._mkcol("/".join(parts[: i + 1]))
        resp = await self._request("PUT", rel, content=chunks)
        if resp.status_code not in (200, 201, 204):
            raise BackendConnectionError(f"PUT {rel} returned {resp.status_code}")

    async def make_directory(self, path: str) -> None:
        if not await self._mkcol(path):
            LOGGER.debug("nextcloud collection already exists: %s", path)

    async def remove_directory(self, path: str, recursive: bool = True) -> None:
        if not clean_rel_path(path):
            raise ValidationError("refusing to remove the media root")
        if not recursive and await self.list(path):
            raise ValidationError(f"folder not empty: {path}")
        resp = await self._request("DELETE", path)
        if resp.status_code not in (200, 204):
            raise BackendConnectionError(f"DELETE {path} returned {resp.status_code}")


class WebDavAdapter(BackendAdapter):
    def __init__(self, cfg: NextcloudSettings, url_prefix: str = "/nextcloud", name: str = "nextcloud",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.name = name
        self.url_prefix = url_prefix
        self.cfg = cfg
        self.transport = transport

    def connect(self) -> WebDavSession:
        return WebDavSession(self.cfg, transport=self.transport)
