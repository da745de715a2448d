# gallerist/adapters/sftp.py
# Remote file-transfer backend over SFTP (asyncssh).
# Folder semantics: make_directory is makedirs(exist_ok=True), so an existing
# directory is a silent success; remove_directory(recursive=True) is rmtree.
# Host keys are checked against `known_hosts` when configured, otherwise not
# checked at all (same as the old ssh2-sftp-client deployment).

from __future__ import annotations

import asyncio
import logging
import posixpath
import stat as stat_mod
from datetime import datetime, timezone
from typing import AsyncIterable, AsyncIterator, Optional

import asyncssh

from gallerist.adapters.base import CHUNK_SIZE, BackendAdapter, BackendSession
from gallerist.core.config import SftpSettings
from gallerist.core.errors import BackendConnectionError, NotFoundError
from gallerist.schemas.media import ByteRange, DirEntry, FileStat
from gallerist.utils.http import clean_rel_path, join_rel

LOGGER = logging.getLogger("gallerist.adapters.sftp")


def _modified(attrs) -> Optional[datetime]:
    if attrs.mtime is None:
        return None
    try:
        return datetime.fromtimestamp(attrs.mtime, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _is_dir(attrs) -> bool:
    if attrs.permissions is not None:
        return stat_mod.S_ISDIR(attrs.permissions)
    return attrs.type == 2  # FILEXFER_TYPE_DIRECTORY


def _translate(e: Exception, path: str) -> Exception:
    """Map asyncssh/OS errors onto the gallery taxonomy."""
    if isinstance(e, asyncssh.SFTPNoSuchFile):
        return NotFoundError(f"not found on sftp: {path}")
    return BackendConnectionError(f"sftp error on {path}: {e}")


class SftpSession(BackendSession):
    def __init__(self, cfg: SftpSettings):
        self.cfg = cfg
        self._conn: Optional[asyncssh.SSHClientConnection] = None
        self._sftp: Optional[asyncssh.SFTPClient] = None

    def _abs(self, path: str) -> str:
        rel = clean_rel_path(path)
        return posixpath.join(self.cfg.root or "/", rel) if rel else (self.cfg.root or "/")

    async def open(self) -> None:
        try:
            self._conn = await asyncio.wait_for(
                asyncssh.connect(
                    self.cfg.host,
                    port=int(self.cfg.port),
                    username=self.cfg.username or None,
                    password=self.cfg.password or None,
                    known_hosts=self.cfg.known_hosts or None,
                ),
                timeout=self.cfg.timeout,
            )
            self._sftp = await self._conn.start_sftp_client()
        except asyncio.TimeoutError as e:
            await self.close()
            raise BackendConnectionError(f"sftp connect to {self.cfg.host} timed out") from e
        except (OSError, asyncssh.Error) as e:
            await self.close()
            raise BackendConnectionError(f"sftp connect to {self.cfg.host} failed: {e}") from e

    async def close(self) -> None:
        if self._sftp is not None:
            self._sftp.exit()
            self._sftp = None
        if self._conn is not None:
            self._conn.close()
            try:
                await self._conn.wait_closed()
            except (OSError, asyncssh.Error) as e:
                LOGGER.debug("sftp close: %s", e)
            self._conn = None

    @property
    def sftp(self) -> asyncssh.SFTPClient:
        if self._sftp is None:
            raise BackendConnectionError("sftp session is not open")
        return self._sftp

    async def list(self, path: str) -> list[DirEntry]:
        remote = self._abs(path)
        try:
            names = await self.sftp.readdir(remote)
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e

        rel_dir = clean_rel_path(path)
        out: list[DirEntry] = []
        for n in sorted(names, key=lambda n: n.filename):
            if n.filename in (".", ".."):
                continue
            is_dir = _is_dir(n.attrs)
            out.append(DirEntry(
                name=n.filename,
                path=join_rel(rel_dir, n.filename),
                is_dir=is_dir,
                size=None if is_dir else n.attrs.size,
                modified=_modified(n.attrs),
            ))
        return out

    async def stat(self, path: str) -> FileStat:
        remote = self._abs(path)
        try:
            attrs = await self.sftp.stat(remote)
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e
        return FileStat(size=attrs.size or 0, modified=_modified(attrs), is_dir=_is_dir(attrs))

    async def open_read_stream(self, path: str, byte_range: Optional[ByteRange] = None) -> AsyncIterator[bytes]:
        remote = self._abs(path)
        try:
            f = await self.sftp.open(remote, "rb")
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e
        async with f:
            offset = byte_range.start if byte_range else 0
            remaining = byte_range.length if byte_range else None
            while remaining is None or remaining > 0:
                want = CHUNK_SIZE if remaining is None else min(CHUNK_SIZE, remaining)
                try:
                    chunk = await f.read(want, offset)
                except (OSError, asyncssh.Error) as e:
                    raise _translate(e, remote) from e
                if not chunk:
                    break
                offset += len(chunk)
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk

    async def write_stream(self, path: str, chunks: AsyncIterable[bytes]) -> None:
        remote = self._abs(path)
        try:
            await self.sftp.makedirs(posixpath.dirname(remote), exist_ok=True)
            async with self.sftp.open(remote, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e

    async def make_directory(self, path: str) -> None:
        remote = self._abs(path)
        try:
            await self.sftp.makedirs(remote, exist_ok=True)
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e

    async def remove_directory(self, path: str, recursive: bool = True) -> None:
        remote = self._abs(path)
        try:
            if recursive:
                await self.sftp.rmtree(remote)
            else:
                await self.sftp.rmdir(remote)
        except (OSError, asyncssh.Error) as e:
            raise _translate(e, remote) from e


class SftpAdapter(BackendAdapter):
    def __init__(self, cfg: SftpSettings, url_prefix: str = "/media", name: str = "sftp"):
        self.name = name
        self.url_prefix = url_prefix
        self.cfg = cfg

    def connect(self) -> SftpSession:
        return SftpSession(self.cfg)
