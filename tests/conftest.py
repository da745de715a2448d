from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from gallerist.adapters.base import BackendAdapter, BackendSession
from gallerist.core.config import AccessSettings, LocalSettings, Settings, UploadSettings
from gallerist.core.errors import AlreadyExistsError, BackendConnectionError, NotFoundError
from gallerist.schemas.media import DirEntry, FileStat

ALLOWED_IP = "10.0.0.5"
ALLOWED = {"X-Forwarded-For": ALLOWED_IP}


def ts(year, month=1, day=1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


class FakeSession(BackendSession):
    """In-memory backend: {path: (bytes, modified)}; folders are implied or explicit."""

    def __init__(self, adapter: "FakeAdapter"):
        self.adapter = adapter

    async def open(self) -> None:
        if self.adapter.down:
            raise BackendConnectionError(f"{self.adapter.name} unreachable")
        self.adapter.opened += 1

    async def close(self) -> None:
        self.adapter.closed += 1

    async def list(self, path: str):
        prefix = f"{path}/" if path else ""
        implied = any(p.startswith(prefix) for p in self.adapter.files)
        if path and path not in self.adapter.folders and not implied:
            raise NotFoundError()
        out = {}
        for p, (data, mtime) in self.adapter.files.items():
            if not p.startswith(prefix):
                continue
            rest = p[len(prefix):]
            if "/" in rest:
                name = rest.split("/")[0]
                out[name] = DirEntry(name=name, path=prefix + name, is_dir=True)
            else:
                size = None if self.adapter.omit_metadata else len(data)
                modified = None if self.adapter.omit_metadata else mtime
                out[rest] = DirEntry(name=rest, path=p, is_dir=False, size=size, modified=modified)
        return [out[k] for k in sorted(out)]

    async def stat(self, path: str) -> FileStat:
        if path in self.adapter.broken_stat:
            raise BackendConnectionError("stat exploded")
        if path not in self.adapter.files:
            raise NotFoundError()
        data, mtime = self.adapter.files[path]
        return FileStat(size=len(data), modified=mtime)

    async def open_read_stream(self, path, byte_range=None):
        if path not in self.adapter.files:
            raise NotFoundError()
        data = self.adapter.files[path][0]
        if byte_range is not None:
            data = data[byte_range.start:byte_range.end + 1]
        if self.adapter.drop_mid_stream:
            yield data[: len(data) // 2]
            raise BackendConnectionError("connection dropped")
        yield data

    async def write_stream(self, path, chunks):
        buf = b""
        async for c in chunks:
            buf += c
        self.adapter.files[path] = (buf, ts(2024))

    async def make_directory(self, path):
        if self.adapter.fail_folders:
            raise BackendConnectionError("mkdir refused")
        if path in self.adapter.folders and self.adapter.strict_folders:
            raise AlreadyExistsError()
        self.adapter.folders.add(path)

    async def remove_directory(self, path, recursive=True):
        if self.adapter.fail_folders:
            raise BackendConnectionError("rmdir refused")
        if path not in self.adapter.folders:
            raise NotFoundError()
        self.adapter.folders.discard(path)
        for p in [p for p in self.adapter.files if p.startswith(path + "/")]:
            del self.adapter.files[p]


class FakeAdapter(BackendAdapter):
    def __init__(self, name: str, url_prefix: Optional[str] = None,
                 files: Optional[Dict[str, Tuple[bytes, Optional[datetime]]]] = None,
                 down: bool = False, strict_folders: bool = False):
        self.name = name
        self.url_prefix = url_prefix or f"/{name}"
        self.files = dict(files or {})
        self.folders = set()
        self.down = down
        self.strict_folders = strict_folders
        self.omit_metadata = False
        self.broken_stat = set()
        self.fail_folders = False
        self.drop_mid_stream = False
        self.opened = 0
        self.closed = 0

    def connect(self) -> FakeSession:
        return FakeSession(self)


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "local_media"
    root.mkdir()
    return root


@pytest.fixture
def settings(media_root: Path) -> Settings:
    return Settings(
        local=LocalSettings(root=media_root),
        access=AccessSettings(allowed_ip=ALLOWED_IP),
        upload=UploadSettings(limit_mb=1),
    )


@pytest.fixture
def client(settings: Settings) -> TestClient:
    from gallerist.main import create_app

    return TestClient(create_app(settings))
