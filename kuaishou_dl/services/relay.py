import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, Tuple
from urllib.parse import urljoin

import httpx

from kuaishou_dl.config.settings import config
from kuaishou_dl.core.errors import NetworkError, RedirectRefused, UpstreamError
from kuaishou_dl.core.security import SecurityValidator, UrlValidationResult
from kuaishou_dl.models.internal import RelayRequest
from kuaishou_dl.utils.headers import build_headers
from kuaishou_dl.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


class RelayService:
    """Media relay service"""

    @staticmethod
    async def _send(client: httpx.AsyncClient, url: str) -> httpx.Response:
        headers = build_headers(url)
        # Raw bytes are forwarded; keep them identical to Content-Length
        headers["Accept"] = "*/*"
        headers["Accept-Encoding"] = "identity"

        request = client.build_request("GET", url, headers=headers)
        try:
            return await client.send(request, stream=True, follow_redirects=False)
        except httpx.RequestError as e:
            raise NetworkError(f"Relay request to {safe_url_for_log(url)} failed: {e}") from e

    @staticmethod
    async def _follow(client: httpx.AsyncClient, url: str) -> httpx.Response:
        """
        Open url as a stream, following redirects by hand.
        Every redirect target goes through the SSRF guard before it is requested;
        once the hop budget is spent the redirect response itself is returned.
        """
        current_url = url
        hops = 0
        while True:
            upstream = await RelayService._send(client, current_url)
            location = upstream.headers.get("location")
            if not (300 <= upstream.status_code < 400 and location) or hops >= config.http.max_redirects:
                return upstream

            await upstream.aclose()
            hops += 1
            current_url = urljoin(current_url, location)
            if await SecurityValidator.validate_url(current_url) != UrlValidationResult.OK:
                raise RedirectRefused(f"Relay redirect to {safe_url_for_log(current_url)} refused")

    @staticmethod
    async def open(
        client: httpx.AsyncClient,
        relay: RelayRequest,
    ) -> Tuple[AsyncIterator[bytes], Dict[str, str], Callable[[], Awaitable[None]]]:
        """
        Start relaying relay.url.
        Returns (generator, headers, close). The first chunk is read before
        returning, so anything failing here can still become a proper error
        response. close releases the upstream response and is safe to call twice.
        """
        safe_url = safe_url_for_log(relay.url)
        upstream = await RelayService._follow(client, relay.url)

        if not upstream.is_success:
            await upstream.aclose()
            raise UpstreamError(upstream.status_code)

        chunks = upstream.aiter_raw(config.relay.chunk_size)
        try:
            first_chunk = await chunks.__anext__()
        except StopAsyncIteration:
            first_chunk = b""
        except httpx.HTTPError as e:
            await upstream.aclose()
            raise NetworkError(f"Relay read from {safe_url} failed: {e}") from e

        async def generate():
            """Forward upstream chunks as they arrive"""
            sent = 0
            try:
                if first_chunk:
                    sent += len(first_chunk)
                    yield first_chunk
                async for chunk in chunks:
                    sent += len(chunk)
                    yield chunk
            except httpx.HTTPError as e:
                # Headers are already out; all we can do is end the stream
                logger.warning("Relay of %s aborted after %d bytes: %s", safe_url, sent, e)
            finally:
                await upstream.aclose()
                logger.debug("Relay of %s closed after %d bytes", safe_url, sent)

        safe_filename = relay.filename.replace('"', '\\"')
        headers = {
            "Content-Type": relay.content_type,
            "Content-Disposition": f'attachment; filename="{safe_filename}"',
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": "no-cache",
        }

        content_length = upstream.headers.get("content-length")
        if content_length and content_length.isdigit():
            headers["Content-Length"] = content_length

        return generate(), headers, upstream.aclose
