"""Response recorder tests."""

import asyncio
from collections.abc import AsyncIterator

from starlette.responses import Response, StreamingResponse

from livedev.middleware.recorder import ResponseRecorder


def test_capture_drains_streaming_body() -> None:
    async def chunks() -> AsyncIterator[bytes]:
        yield b"hello "
        yield b"world"

    async def scenario() -> ResponseRecorder:
        response = StreamingResponse(chunks(), status_code=201, media_type="text/plain")
        return await ResponseRecorder.capture(response)

    recorder = asyncio.run(scenario())

    assert recorder.status_code == 201
    assert bytes(recorder.body) == b"hello world"
    assert recorder.content_type.startswith("text/plain")


def test_capture_reads_plain_response_body() -> None:
    async def scenario() -> ResponseRecorder:
        return await ResponseRecorder.capture(Response(b"abc", status_code=404))

    recorder = asyncio.run(scenario())

    assert recorder.status_code == 404
    assert bytes(recorder.body) == b"abc"


def test_copy_to_replays_headers_verbatim() -> None:
    """Duplicate headers survive in their original order."""
    recorder = ResponseRecorder(
        200,
        [
            (b"set-cookie", b"a=1"),
            (b"set-cookie", b"b=2"),
            (b"x-custom", b"yes"),
            (b"content-length", b"3"),
        ],
    )
    recorder.write(b"abc")

    response = recorder.copy_to()

    assert response.status_code == 200
    assert response.body == b"abc"
    assert response.raw_headers == [
        (b"set-cookie", b"a=1"),
        (b"set-cookie", b"b=2"),
        (b"x-custom", b"yes"),
        (b"content-length", b"3"),
    ]


def test_write_header_and_write_only_touch_memory() -> None:
    recorder = ResponseRecorder()
    recorder.write_header(418)
    written = recorder.write(b"teapot")
    recorder.headers["content-type"] = "text/plain"

    assert written == 6
    assert recorder.status_code == 418
    assert recorder.copy_to().headers["content-type"] == "text/plain"
