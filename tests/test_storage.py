from __future__ import annotations

import pytest

from echoes_media.errors import AppError, ErrorCode, JobErrorCode
from echoes_media.storage import decode_data_uri, is_data_uri, upload_data_uri

from .queue_fakes import UPLOAD_URL, FakeQueue, Reply, connect_error

_PNG_URI = "data:image/png;base64,aGVsbG8="


async def _upload(data_uri: str, *replies: Reply) -> tuple[FakeQueue, str]:
    queue = FakeQueue()
    queue.add("POST", "/upload", *replies)
    client = queue.client()
    try:
        return queue, await upload_data_uri(client, UPLOAD_URL, data_uri, "k")
    finally:
        await client.aclose()


def test_decode_data_uri() -> None:
    assert decode_data_uri(_PNG_URI) == ("image/png", b"hello")
    assert decode_data_uri("data:;base64,aGk=") == ("application/octet-stream", b"hi")
    assert is_data_uri(_PNG_URI)
    assert not is_data_uri("https://x/y.png")


@pytest.mark.parametrize(
    "bad",
    [
        "data:image/png;base64",
        "data:image/png,hello",
        "data:image/png;base64,***",
        "data:image/png;base64,",
    ],
)
def test_decode_data_uri_rejects_malformed(bad: str) -> None:
    with pytest.raises(AppError) as exc_info:
        decode_data_uri(bad)
    assert exc_info.value.code == ErrorCode.INVALID_INPUT


@pytest.mark.asyncio
async def test_upload_returns_hosted_url() -> None:
    queue, url = await _upload(_PNG_URI, (200, {"url": "https://files.test/x.png"}))
    assert url == "https://files.test/x.png"
    sent = queue.requests[0]
    assert sent.headers["Authorization"] == "Key k"
    assert sent.headers["Content-Type"] == "image/png"
    assert sent.content == b"hello"


@pytest.mark.asyncio
async def test_plain_urls_pass_through() -> None:
    queue, url = await _upload("https://files.test/already.png", (500, b"unused"))
    assert url == "https://files.test/already.png"
    assert queue.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("reply", "code"),
    [
        ((401, b"no"), JobErrorCode.INVALID_CREDENTIAL),
        ((500, b"down"), JobErrorCode.UPLOAD_FAILED),
        ((200, {"ok": True}), JobErrorCode.PROTOCOL_VIOLATION),
    ],
)
async def test_upload_errors(reply: Reply, code: JobErrorCode) -> None:
    with pytest.raises(AppError) as exc_info:
        await _upload(_PNG_URI, reply)
    assert exc_info.value.code == code


@pytest.mark.asyncio
async def test_upload_transport_error() -> None:
    with pytest.raises(AppError) as exc_info:
        await _upload(_PNG_URI, connect_error())
    assert exc_info.value.code == JobErrorCode.UPLOAD_FAILED
