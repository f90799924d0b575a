import logging
from typing import Optional
from urllib.parse import urljoin

import httpx

from kuaishou_dl.config.settings import config
from kuaishou_dl.core.errors import NetworkError, NoResponseError
from kuaishou_dl.models.internal import FetchAttempt
from kuaishou_dl.utils.headers import build_headers
from kuaishou_dl.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


class RedirectFetcher:
    """
    Page fetcher that follows redirects by hand.
    Every hop gets a freshly rotated header set, with the hop URL as Referer.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch(self, url: str, max_redirects: Optional[int] = None) -> httpx.Response:
        """
        Fetch url, following at most max_redirects redirect hops.
        Returns the first non-redirect response, a 3xx without Location,
        or the last response once the hop budget is spent.
        """
        if max_redirects is None:
            max_redirects = config.http.max_redirects

        current_url = url
        response: Optional[httpx.Response] = None

        for hop in range(max_redirects):
            attempt = FetchAttempt(url=current_url, hop=hop, headers=build_headers(current_url))
            response = await self._send(attempt)

            location = response.headers.get("location")
            if 300 <= response.status_code < 400 and location:
                current_url = urljoin(current_url, location)
                logger.debug(
                    "Hop %d: %s -> %s",
                    hop,
                    response.status_code,
                    safe_url_for_log(current_url),
                )
                continue
            break

        if response is None:
            raise NoResponseError(f"No response obtained for {safe_url_for_log(url)}")

        return response

    async def _send(self, attempt: FetchAttempt) -> httpx.Response:
        try:
            return await self.client.get(
                attempt.url,
                headers=attempt.headers,
                follow_redirects=False,
            )
        except httpx.RequestError as e:
            raise NetworkError(f"Request to {safe_url_for_log(attempt.url)} failed: {e}") from e
