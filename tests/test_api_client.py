"""Tests for the HTTP upload adapter."""
import httpx
import pytest

from rapidup.errors import NetworkError, ParseError, UploadTimeoutError
from rapidup.models import FileDescriptor
from rapidup.services.api_client import HTTPUploadClient

URL = "http://testserver/upload"


def _client(handler, **kwargs):
    return HTTPUploadClient(URL, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_multipart_fields():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["Content-Type"]
        seen["length"] = int(request.headers["Content-Length"])
        seen["body"] = request.content
        return httpx.Response(200, json={"status": "success"})

    descriptor = FileDescriptor.from_bytes("notes.txt", b"hello upload")
    async with _client(handler) as client:
        response = await client.send(descriptor, b"hello upload", 1700000000000)

    assert response.status_code == 200
    assert seen["method"] == "POST"
    assert seen["url"] == URL
    assert seen["content_type"].startswith("multipart/form-data; boundary=")
    assert seen["length"] == len(seen["body"])

    body = seen["body"]
    assert b'name="file"; filename="notes.txt"' in body
    assert b"hello upload" in body
    assert b'name="originalSize"\r\n\r\n12\r\n' in body
    assert b'name="timestamp"\r\n\r\n1700000000000\r\n' in body


@pytest.mark.asyncio
async def test_progress_reaches_body_length():
    ticks = []

    async def on_progress(loaded, total):
        ticks.append((loaded, total))

    def handler(request):
        return httpx.Response(200, json={"status": "success"})

    data = b"x" * 10_000
    descriptor = FileDescriptor.from_bytes("big.bin", data)
    async with _client(handler, chunk_size=1024) as client:
        await client.send(descriptor, data, 0, on_progress)

    total = ticks[-1][1]
    assert total > len(data)
    assert ticks[-1][0] == total
    loaded = [t[0] for t in ticks]
    assert loaded == sorted(loaded)
    assert len(ticks) == -(-total // 1024)


@pytest.mark.asyncio
async def test_sync_progress_callback_is_accepted():
    ticks = []

    def handler(request):
        return httpx.Response(200, json={"status": "success"})

    descriptor = FileDescriptor.from_bytes("a.bin", b"abc")
    async with _client(handler) as client:
        await client.send(descriptor, b"abc", 0, lambda loaded, total: ticks.append(loaded))

    assert ticks


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised():
    def handler(request):
        return httpx.Response(500, text="boom")

    descriptor = FileDescriptor.from_bytes("a.bin", b"abc")
    async with _client(handler) as client:
        response = await client.send(descriptor, b"abc", 0)

    assert response.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc, expected",
    [
        (httpx.ConnectError("connection refused"), NetworkError),
        (httpx.ConnectTimeout("connect timed out"), NetworkError),
        (httpx.RemoteProtocolError("peer closed"), NetworkError),
        (httpx.ReadTimeout("read timed out"), UploadTimeoutError),
        (httpx.WriteTimeout("write timed out"), UploadTimeoutError),
    ],
)
async def test_transport_errors_are_translated(exc, expected):
    def handler(request):
        raise exc

    descriptor = FileDescriptor.from_bytes("a.bin", b"abc")
    async with _client(handler) as client:
        with pytest.raises(expected) as exc_info:
            await client.send(descriptor, b"abc", 0)

    assert URL in str(exc_info.value)


@pytest.mark.asyncio
async def test_send_outside_context_raises():
    client = HTTPUploadClient(URL)
    descriptor = FileDescriptor.from_bytes("a.bin", b"abc")

    with pytest.raises(RuntimeError):
        await client.send(descriptor, b"abc", 0)


def test_endpoint_url():
    assert HTTPUploadClient(URL).endpoint_url == URL


@pytest.mark.asyncio
async def test_undecodable_body_is_parse_error():
    def handler(request):
        return httpx.Response(
            200,
            headers={"Content-Encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip at all"),
        )

    descriptor = FileDescriptor.from_bytes("a.bin", b"abc")
    async with _client(handler) as client:
        with pytest.raises(ParseError) as exc_info:
            await client.send(descriptor, b"abc", 0)

    assert str(exc_info.value) == "Failed to parse server response"
