# gallerist/adapters/local.py
# Local disk backend. Everything is confined under `root`.
# Folder semantics: make_directory raises AlreadyExistsError on an existing
# target; remove_directory raises NotFoundError on a missing one.
# Writes land in "<name>.part" and are renamed into place when complete.

from __future__ import annotations

import asyncio
import shutil
import stat as stat_mod
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Optional

import aiofiles
import aiofiles.os

from gallerist.adapters.base import CHUNK_SIZE, BackendAdapter, BackendSession
from gallerist.core.errors import (
    AlreadyExistsError,
    BackendConnectionError,
    ForbiddenError,
    NotFoundError,
)
from gallerist.schemas.media import ByteRange, DirEntry, FileStat
from gallerist.utils.http import clean_rel_path, join_rel, safe_rel_under


def _mtime(st) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class LocalSession(BackendSession):
    def __init__(self, root: Path):
        self.root = root

    def _abs(self, path: str) -> Path:
        rel = clean_rel_path(path)
        target = self.root / rel if rel else self.root
        if safe_rel_under(self.root, target) is None:
            raise ForbiddenError("forbidden path")
        return target

    async def open(self) -> None:
        if not await aiofiles.os.path.isdir(self.root):
            raise BackendConnectionError(f"local media root missing: {self.root}")

    async def list(self, path: str) -> list[DirEntry]:
        d = self._abs(path)
        if not await aiofiles.os.path.isdir(d):
            raise NotFoundError(f"directory not found: {path or '/'}")
        try:
            names = await aiofiles.os.listdir(d)
        except OSError as e:
            raise BackendConnectionError(f"cannot list {path or '/'}: {e}") from e

        rel_dir = clean_rel_path(path)
        out: list[DirEntry] = []
        for name in sorted(names):
            if "\\" in name:
                # not addressable through a gallery URL
                continue
            rel = join_rel(rel_dir, name)
            try:
                st = await aiofiles.os.stat(d / name)
            except OSError:
                # vanished or unreadable; let the catalog decide via stat()
                out.append(DirEntry(name=name, path=rel, is_dir=False))
                continue
            is_dir = stat_mod.S_ISDIR(st.st_mode)
            out.append(DirEntry(
                name=name,
                path=rel,
                is_dir=is_dir,
                size=None if is_dir else st.st_size,
                modified=_mtime(st),
            ))
        return out

    async def stat(self, path: str) -> FileStat:
        p = self._abs(path)
        try:
            st = await aiofiles.os.stat(p)
        except FileNotFoundError as e:
            raise NotFoundError() from e
        except OSError as e:
            raise BackendConnectionError(f"cannot stat {path}: {e}") from e
        return FileStat(size=st.st_size, modified=_mtime(st), is_dir=stat_mod.S_ISDIR(st.st_mode))

    async def open_read_stream(self, path: str, byte_range: Optional[ByteRange] = None) -> AsyncIterator[bytes]:
        p = self._abs(path)
        try:
            f = await aiofiles.open(p, "rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise NotFoundError() from e
        async with f:
            remaining = None
            if byte_range is not None:
                await f.seek(byte_range.start)
                remaining = byte_range.length
            while remaining is None or remaining > 0:
                want = CHUNK_SIZE if remaining is None else min(CHUNK_SIZE, remaining)
                chunk = await f.read(want)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk

    async def write_stream(self, path: str, chunks: AsyncIterable[bytes]) -> None:
        p = self._abs(path)
        if p == self.root:
            raise ForbiddenError("forbidden path")
        await aiofiles.os.makedirs(p.parent, exist_ok=True)
        part = p.with_name(p.name + ".part")
        try:
            async with aiofiles.open(part, "wb") as out:
                async for chunk in chunks:
                    await out.write(chunk)
            await aiofiles.os.replace(part, p)
        except BaseException:
            if await aiofiles.os.path.exists(part):
                await aiofiles.os.remove(part)
            raise

    async def make_directory(self, path: str) -> None:
        p = self._abs(path)
        if await aiofiles.os.path.exists(p):
            raise AlreadyExistsError()
        try:
            await aiofiles.os.mkdir(p)
        except FileExistsError as e:
            raise AlreadyExistsError() from e
        except FileNotFoundError as e:
            raise NotFoundError(f"parent folder missing for {path}") from e

    async def remove_directory(self, path: str, recursive: bool = True) -> None:
        p = self._abs(path)
        if p == self.root:
            raise ForbiddenError("refusing to remove the media root")
        if not await aiofiles.os.path.isdir(p):
            raise NotFoundError(f"folder not found: {path}")
        try:
            if recursive:
                await asyncio.to_thread(shutil.rmtree, p)
            else:
                await aiofiles.os.rmdir(p)
        except OSError as e:
            raise BackendConnectionError(f"cannot remove {path}: {e}") from e


class LocalAdapter(BackendAdapter):
    strict_folders = True

    def __init__(self, root: Path, url_prefix: str = "/local", name: str = "local"):
        self.name = name
        self.url_prefix = url_prefix
        self.root = Path(root).expanduser().resolve()

    def connect(self) -> LocalSession:
        return LocalSession(self.root)
