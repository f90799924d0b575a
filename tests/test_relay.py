import httpx
import pytest

from kuaishou_dl.config.settings import config
from kuaishou_dl.core.errors import NetworkError, RedirectRefused, UpstreamError
from kuaishou_dl.models.internal import RelayRequest
from kuaishou_dl.services.relay import RelayService

MEDIA_URL = "https://v2.kwaicdn.com/upic/cat.mp4?tag=1"


class TrackedStream(httpx.AsyncByteStream):
    """Upstream body that remembers whether it was closed"""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


async def relay(handler, kind="video"):
    """Run a relay to completion; returns (body, headers, seen requests)"""
    seen = []

    def recording(request):
        seen.append(request)
        return handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(recording)) as client:
        body, headers, close = await RelayService.open(client, RelayRequest.for_kind(MEDIA_URL, kind))
        chunks = [chunk async for chunk in body]
        await close()
    return chunks, headers, seen


def test_relay_request_kinds():
    audio = RelayRequest.for_kind(MEDIA_URL, "audio")
    assert audio.content_type == "audio/mp4"
    assert audio.filename == config.relay.audio_filename

    for kind in ("video", "", None, "subtitles"):
        video = RelayRequest.for_kind(MEDIA_URL, kind)
        assert video.kind == "video"
        assert video.content_type == "video/mp4"
        assert video.filename == config.relay.video_filename


@pytest.mark.asyncio
async def test_forwards_body_and_content_length():
    chunks, headers, _ = await relay(lambda request: httpx.Response(200, content=b"x" * 1000))

    assert b"".join(chunks) == b"x" * 1000
    assert headers["Content-Length"] == "1000"
    assert headers["Content-Type"] == "video/mp4"
    assert headers["Content-Disposition"] == f'attachment; filename="{config.relay.video_filename}"'


@pytest.mark.asyncio
async def test_large_body_is_chunked():
    size = config.relay.chunk_size * 3 + 17
    chunks, headers, _ = await relay(lambda request: httpx.Response(200, content=b"y" * size))

    assert len(chunks) > 1
    assert max(len(c) for c in chunks) <= config.relay.chunk_size
    assert sum(len(c) for c in chunks) == size


@pytest.mark.asyncio
async def test_missing_content_length_is_not_invented():
    async def stream():
        yield b"abc"
        yield b"def"

    chunks, headers, _ = await relay(lambda request: httpx.Response(200, content=stream()))

    assert b"".join(chunks) == b"abcdef"
    assert "Content-Length" not in headers


@pytest.mark.asyncio
async def test_audio_headers():
    _, headers, _ = await relay(lambda request: httpx.Response(200, content=b"a"), kind="audio")

    assert headers["Content-Type"] == "audio/mp4"
    assert headers["Content-Disposition"] == f'attachment; filename="{config.relay.audio_filename}"'


@pytest.mark.asyncio
async def test_upstream_request_headers():
    _, _, seen = await relay(lambda request: httpx.Response(200, content=b"a"))

    assert seen[0].headers["referer"] == MEDIA_URL
    assert seen[0].headers["accept-encoding"] == "identity"


@pytest.mark.asyncio
async def test_upstream_error_status_is_kept():
    with pytest.raises(UpstreamError) as exc_info:
        await relay(lambda request: httpx.Response(404, content=b"not here"))
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    with pytest.raises(NetworkError):
        await relay(handler)


@pytest.mark.asyncio
async def test_read_failure_before_first_chunk_is_network_error():
    async def stream():
        raise httpx.ReadError("reset before data")
        yield b""  # pragma: no cover

    with pytest.raises(NetworkError):
        await relay(lambda request: httpx.Response(200, content=stream()))


@pytest.mark.asyncio
async def test_read_failure_mid_stream_ends_the_stream():
    first = b"z" * config.relay.chunk_size

    async def stream():
        yield first
        raise httpx.ReadError("reset mid-stream")

    chunks, _, _ = await relay(lambda request: httpx.Response(200, content=stream()))

    assert b"".join(chunks) == first


@pytest.mark.asyncio
async def test_upstream_is_closed_after_full_relay():
    stream = TrackedStream(b"abc", b"def")
    chunks, _, _ = await relay(lambda request: httpx.Response(200, stream=stream))

    assert b"".join(chunks) == b"abcdef"
    assert stream.closed


@pytest.mark.asyncio
async def test_upstream_is_closed_when_caller_goes_away():
    stream = TrackedStream(b"first", b"second", b"third")

    async with httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, stream=stream)
    )) as client:
        body, _, _ = await RelayService.open(client, RelayRequest.for_kind(MEDIA_URL, "video"))
        assert await body.__anext__() == b"first"
        assert not stream.closed

        await body.aclose()
        assert stream.closed


@pytest.mark.asyncio
async def test_upstream_is_closed_on_error_status():
    stream = TrackedStream(b"error page")

    with pytest.raises(UpstreamError):
        await relay(lambda request: httpx.Response(503, stream=stream))
    assert stream.closed


@pytest.mark.asyncio
async def test_redirects_are_followed_and_closed():
    hop = TrackedStream(b"")
    final = TrackedStream(b"media")

    def handler(request):
        if request.url.path == "/upic/cat.mp4":
            return httpx.Response(302, headers={"Location": "/moved/cat.mp4"}, stream=hop)
        return httpx.Response(200, stream=final)

    chunks, _, seen = await relay(handler)

    assert b"".join(chunks) == b"media"
    assert [r.url.path for r in seen] == ["/upic/cat.mp4", "/moved/cat.mp4"]
    assert seen[1].headers["referer"] == "https://v2.kwaicdn.com/moved/cat.mp4"
    assert hop.closed and final.closed


@pytest.mark.asyncio
async def test_redirect_to_internal_address_is_refused():
    config.security.enable_ssrf_protection = True
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(302, headers={"Location": "http://127.0.0.1:6379/x.mp4"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(RedirectRefused):
            await RelayService.open(client, RelayRequest.for_kind(MEDIA_URL, "video"))

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_redirect_to_non_http_scheme_is_refused():
    def handler(request):
        return httpx.Response(302, headers={"Location": "file:///etc/passwd"})

    with pytest.raises(RedirectRefused):
        await relay(handler)


@pytest.mark.asyncio
async def test_endless_redirects_stop_at_the_hop_budget():
    def handler(request):
        return httpx.Response(302, headers={"Location": f"{request.url.path}/again"})

    with pytest.raises(UpstreamError) as exc_info:
        await relay(handler)
    assert exc_info.value.status_code == 302
