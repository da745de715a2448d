import pytest

from gallerist.adapters.local import LocalAdapter
from gallerist.core.errors import (
    AlreadyExistsError,
    BackendConnectionError,
    ForbiddenError,
    NotFoundError,
)
from gallerist.schemas.media import ByteRange


async def _agen(*chunks):
    for c in chunks:
        yield c


async def _read_all(conn, path, byte_range=None) -> bytes:
    out = b""
    async for chunk in conn.open_read_stream(path, byte_range):
        out += chunk
    return out


@pytest.mark.asyncio
async def test_list_reports_size_and_mtime(media_root):
    (media_root / "b.jpg").write_bytes(b"12345")
    (media_root / "a").mkdir()

    async with LocalAdapter(media_root).connect() as conn:
        entries = await conn.list("")

    assert [(e.name, e.is_dir) for e in entries] == [("a", True), ("b.jpg", False)]
    b = entries[1]
    assert b.size == 5
    assert b.modified is not None and b.modified.tzinfo is not None


@pytest.mark.asyncio
async def test_list_missing_directory(media_root):
    async with LocalAdapter(media_root).connect() as conn:
        with pytest.raises(NotFoundError):
            await conn.list("nope")


@pytest.mark.asyncio
async def test_missing_root_fails_to_connect(tmp_path):
    with pytest.raises(BackendConnectionError):
        async with LocalAdapter(tmp_path / "gone").connect():
            pass


@pytest.mark.asyncio
async def test_read_stream_full_and_range(media_root):
    data = bytes(range(200))
    (media_root / "v.mp4").write_bytes(data)

    async with LocalAdapter(media_root).connect() as conn:
        assert await _read_all(conn, "v.mp4") == data
        assert await _read_all(conn, "v.mp4", ByteRange(10, 19)) == data[10:20]
        with pytest.raises(NotFoundError):
            await _read_all(conn, "missing.mp4")


@pytest.mark.asyncio
async def test_write_creates_parents_and_replaces(media_root):
    async with LocalAdapter(media_root).connect() as conn:
        await conn.write_stream("x/y/clip.mp4", _agen(b"ab", b"cd"))
        await conn.write_stream("x/y/clip.mp4", _agen(b"new"))

    assert (media_root / "x" / "y" / "clip.mp4").read_bytes() == b"new"
    assert not (media_root / "x" / "y" / "clip.mp4.part").exists()


@pytest.mark.asyncio
async def test_failed_write_leaves_nothing_behind(media_root):
    async def broken():
        yield b"partial"
        raise OSError("client went away")

    async with LocalAdapter(media_root).connect() as conn:
        with pytest.raises(OSError):
            await conn.write_stream("clip.mp4", broken())

    assert list(media_root.iterdir()) == []


@pytest.mark.asyncio
async def test_make_directory_conflict(media_root):
    async with LocalAdapter(media_root).connect() as conn:
        await conn.make_directory("album")
        with pytest.raises(AlreadyExistsError):
            await conn.make_directory("album")
    assert (media_root / "album").is_dir()


@pytest.mark.asyncio
async def test_remove_directory(media_root):
    (media_root / "album" / "deep").mkdir(parents=True)
    (media_root / "album" / "deep" / "a.jpg").write_bytes(b"x")
    (media_root / "empty").mkdir()

    async with LocalAdapter(media_root).connect() as conn:
        await conn.remove_directory("album", recursive=True)
        await conn.remove_directory("empty", recursive=False)
        with pytest.raises(NotFoundError):
            await conn.remove_directory("album")
        with pytest.raises(ForbiddenError):
            await conn.remove_directory("")

    assert list(media_root.iterdir()) == []


@pytest.mark.asyncio
async def test_paths_cannot_escape_root(media_root):
    async with LocalAdapter(media_root).connect() as conn:
        with pytest.raises(ForbiddenError):
            await conn.stat("../secret.txt")
        with pytest.raises(ForbiddenError):
            await conn.write_stream("../../evil.jpg", _agen(b"x"))


@pytest.mark.asyncio
async def test_unservable_names_are_not_listed(media_root):
    (media_root / "a\\b.jpg").write_bytes(b"x")
    (media_root / "ok.jpg").write_bytes(b"x")

    async with LocalAdapter(media_root).connect() as conn:
        entries = await conn.list("")

    assert [e.name for e in entries] == ["ok.jpg"]


def test_every_listed_local_url_streams(client, media_root):
    (media_root / "a\\b.jpg").write_bytes(b"x")
    (media_root / "ok.jpg").write_bytes(b"x")

    urls = [item["url"] for item in client.get("/api/gallery").json()]

    assert urls == ["/local/ok.jpg"]
    assert all(client.get(u).status_code == 200 for u in urls)
