import logging
from typing import Optional

import httpx

from kuaishou_dl.core.errors import MediaNotFound
from kuaishou_dl.models.response import MediaDescriptor
from kuaishou_dl.services.extractor import extract
from kuaishou_dl.services.fetcher import RedirectFetcher
from kuaishou_dl.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


class VideoResolveService:
    """Page URL -> MediaDescriptor"""

    @staticmethod
    async def resolve(
        client: httpx.AsyncClient,
        url: str,
        max_redirects: Optional[int] = None,
    ) -> MediaDescriptor:
        """
        Fetch the page (following redirects) and run the extraction cascade.
        The URL is expected to be validated as a platform URL already.
        """
        response = await RedirectFetcher(client).fetch(url, max_redirects)
        logger.debug(
            "Final page response %s from %s (%d bytes)",
            response.status_code,
            safe_url_for_log(str(response.url)),
            len(response.content),
        )

        # Relative media URLs belong to the page that served the markup
        descriptor = extract(response.text, str(response.url))
        if descriptor is None:
            raise MediaNotFound(f"No video found on {safe_url_for_log(url)}")

        return descriptor
