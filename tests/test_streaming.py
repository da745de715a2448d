import pytest

from gallerist.core.errors import BackendConnectionError, RangeNotSatisfiableError
from gallerist.schemas.media import ByteRange
from gallerist.services.streaming import content_type_for, parse_range, stream

from conftest import FakeAdapter, ts

PAYLOAD = bytes(range(256)) * 4  # 1024 bytes, every offset distinguishable


# ---------- parse_range ----------
def test_no_header_means_full_content():
    assert parse_range(None, 1000) is None
    assert parse_range("", 1000) is None


def test_explicit_open_and_suffix_ranges():
    assert parse_range("bytes=0-99", 1000) == ByteRange(0, 99)
    assert parse_range("bytes=900-", 1000) == ByteRange(900, 999)
    assert parse_range("bytes=-100", 1000) == ByteRange(900, 999)
    assert parse_range("bytes=999-999", 1000).length == 1


@pytest.mark.parametrize("header", [
    "bytes=900-999",    # start beyond a 500-byte file
    "bytes=0-500",      # end beyond the file, no clamping
    "bytes=200-100",    # start > end
    "bytes=-600",       # suffix longer than the file
    "bytes=-0",
    "bytes=abc-def",
    "items=0-10",
    "bytes=0-1,5-6",
    "bytes=-",
])
def test_unsatisfiable_ranges_raise(header):
    with pytest.raises(RangeNotSatisfiableError) as exc:
        parse_range(header, 500)
    assert exc.value.size == 500


def test_content_types():
    assert content_type_for("a.mp4") == "video/mp4"
    assert content_type_for("a.webp") == "image/webp"
    assert content_type_for("a.mov") == "video/quicktime"
    assert content_type_for("a.unknownext") == "application/octet-stream"


# ---------- routes (local backend) ----------
def test_full_download(client, media_root):
    (media_root / "clip.mp4").write_bytes(PAYLOAD)

    r = client.get("/local/clip.mp4")

    assert r.status_code == 200
    assert r.content == PAYLOAD
    assert r.headers["content-length"] == str(len(PAYLOAD))
    assert r.headers["content-type"] == "video/mp4"
    assert r.headers["accept-ranges"] == "bytes"


def test_first_hundred_bytes(client, media_root):
    (media_root / "clip.mp4").write_bytes(PAYLOAD[:1000])

    r = client.get("/local/clip.mp4", headers={"Range": "bytes=0-99"})

    assert r.status_code == 206
    assert r.headers["content-length"] == "100"
    assert r.headers["content-range"] == "bytes 0-99/1000"
    assert r.headers["accept-ranges"] == "bytes"
    assert r.content == PAYLOAD[:100]


def test_middle_span(client, media_root):
    (media_root / "clip.mov").write_bytes(PAYLOAD)

    r = client.get("/local/clip.mov", headers={"Range": "bytes=300-555"})

    assert r.status_code == 206
    assert r.content == PAYLOAD[300:556]


def test_range_past_end_is_416(client, media_root):
    (media_root / "short.mp4").write_bytes(PAYLOAD[:500])

    r = client.get("/local/short.mp4", headers={"Range": "bytes=900-999"})

    assert r.status_code == 416
    assert r.headers["content-range"] == "bytes */500"


def test_encoded_names_resolve(client, media_root):
    (media_root / "my photo #1.jpg").write_bytes(b"jpeg")

    r = client.get("/local/my%20photo%20%231.jpg")

    assert r.status_code == 200
    assert r.content == b"jpeg"


def test_missing_file_is_404(client):
    assert client.get("/local/nope.mp4").status_code == 404


def test_directory_is_404(client, media_root):
    (media_root / "album").mkdir()
    assert client.get("/local/album").status_code == 404


def test_traversal_is_forbidden(client):
    assert client.get("/local/..%2F..%2Fetc%2Fpasswd").status_code == 403


def test_unconfigured_backend_is_404(client):
    assert client.get("/nextcloud/a.jpg").status_code == 404
    assert client.get("/media/a.jpg").status_code == 404


# ---------- failure paths and session lifetime ----------
def _swap_local(client, fake):
    client.app.state.adapters = {"local": fake}
    return fake


def test_full_stream_closes_session(client):
    fake = _swap_local(client, FakeAdapter("local", files={"clip.mp4": (PAYLOAD, ts(2024))}))

    r = client.get("/local/clip.mp4")

    assert r.status_code == 200
    assert r.content == PAYLOAD
    assert fake.opened == fake.closed == 1


def test_unreachable_backend_is_500(client):
    fake = _swap_local(client, FakeAdapter("local", down=True))

    r = client.get("/local/clip.mp4")

    assert r.status_code == 500
    assert r.text == "local unreachable"
    assert fake.opened == fake.closed == 0


def test_stat_failure_is_500_and_closes_session(client):
    fake = _swap_local(client, FakeAdapter("local", files={"clip.mp4": (PAYLOAD, ts(2024))}))
    fake.broken_stat.add("clip.mp4")

    r = client.get("/local/clip.mp4")

    assert r.status_code == 500
    assert fake.opened == fake.closed == 1


@pytest.mark.parametrize("path, headers, status", [
    ("nope.mp4", {}, 404),
    ("clip.mp4", {"Range": "bytes=5000-6000"}, 416),
])
def test_rejected_requests_close_session(client, path, headers, status):
    fake = _swap_local(client, FakeAdapter("local", files={"clip.mp4": (PAYLOAD, ts(2024))}))

    r = client.get(f"/local/{path}", headers=headers)

    assert r.status_code == status
    assert fake.opened == fake.closed == 1


@pytest.mark.asyncio
async def test_failure_after_first_bytes_is_reraised():
    fake = FakeAdapter("local", files={"clip.mp4": (PAYLOAD, ts(2024))})
    fake.drop_mid_stream = True

    resp = await stream(fake, "clip.mp4")
    received = []
    with pytest.raises(BackendConnectionError):
        async for chunk in resp.body_iterator:
            received.append(chunk)

    assert b"".join(received) == PAYLOAD[:512]
    assert resp.headers["content-length"] == str(len(PAYLOAD))
    assert fake.opened == fake.closed == 1


@pytest.mark.asyncio
async def test_abandoned_body_closes_session():
    fake = FakeAdapter("local", files={"clip.mp4": (PAYLOAD, ts(2024))})

    resp = await stream(fake, "clip.mp4", "bytes=0-99")
    first = await resp.body_iterator.__anext__()
    await resp.body_iterator.aclose()

    assert first == PAYLOAD[:100]
    assert resp.status_code == 206
    assert fake.opened == fake.closed == 1
