# gallerist/adapters/base.py
# Uniform capability set over one storage backend.
#
#   async with adapter.connect() as conn:
#       entries = await conn.list("")
#
# The handshake happens on enter; the session is released on every exit path.
# Sessions are per request and never shared.

from __future__ import annotations

import abc
from typing import AsyncIterable, AsyncIterator, Optional

from gallerist.schemas.media import ByteRange, DirEntry, FileStat

CHUNK_SIZE = 1 << 20  # 1 MiB


class BackendSession(abc.ABC):
    """A connected session; use as `async with adapter.connect() as conn`."""

    async def __aenter__(self) -> "BackendSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Handshake. Raise BackendConnectionError on failure."""

    async def close(self) -> None:
        """Release the session. Must not raise."""

    @abc.abstractmethod
    async def list(self, path: str) -> list[DirEntry]:
        ...

    @abc.abstractmethod
    async def stat(self, path: str) -> FileStat:
        ...

    @abc.abstractmethod
    def open_read_stream(self, path: str, byte_range: Optional[ByteRange] = None) -> AsyncIterator[bytes]:
        ...

    @abc.abstractmethod
    async def write_stream(self, path: str, chunks: AsyncIterable[bytes]) -> None:
        ...

    @abc.abstractmethod
    async def make_directory(self, path: str) -> None:
        ...

    @abc.abstractmethod
    async def remove_directory(self, path: str, recursive: bool = True) -> None:
        ...


class BackendAdapter(abc.ABC):
    """Immutable description of one backend; hands out sessions."""

    name: str
    url_prefix: str
    # strict: folder errors surface to the caller (local disk);
    # otherwise folder management is best-effort (remote stores)
    strict_folders: bool = False

    @abc.abstractmethod
    def connect(self) -> BackendSession:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, url_prefix={self.url_prefix!r})"
