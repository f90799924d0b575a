from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from kuaishou_dl.core.errors import RedirectRefused, ResolverError, UpstreamError
from kuaishou_dl.core.logging import log_error, log_info, log_warning
from kuaishou_dl.core.security import SecurityValidator, UrlValidationResult
from kuaishou_dl.i18n import i18n
from kuaishou_dl.infra.http import get_http_client
from kuaishou_dl.infra.rate_limit import rate_limiter
from kuaishou_dl.models.internal import RelayRequest
from kuaishou_dl.models.response import ErrorResponse
from kuaishou_dl.services.relay import RelayService
from kuaishou_dl.utils.locale import safe_url_for_log

router = APIRouter()


def error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.get("/api/download", dependencies=[Depends(rate_limiter)])
async def download(
    request: Request,
    url: Optional[str] = Query(None, description="Resolved media URL"),
    media_type: Optional[str] = Query(None, alias="type", description="video or audio"),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Relay a resolved media URL to the caller as an attachment"""

    _ = i18n.for_request(request)

    if not url:
        return error_json(400, _("error.missing_url"))

    validation_result = await SecurityValidator.validate_url(url)
    if validation_result == UrlValidationResult.BLOCKED:
        return error_json(403, _("error.private_ip"))
    if validation_result == UrlValidationResult.INVALID:
        return error_json(400, _("error.invalid_media_url"))

    relay = RelayRequest.for_kind(url, media_type)
    safe_url = safe_url_for_log(url)
    log_info(request, i18n.get("log.relaying", kind=relay.kind, url=safe_url))

    try:
        body, headers, close = await RelayService.open(client, relay)
    except UpstreamError as e:
        log_warning(request, f"Upstream answered {e.status_code} for {safe_url}")
        # Pass client/server errors through as-is; anything else is a bad gateway
        status_code = e.status_code if e.status_code >= 400 else 502
        return error_json(status_code, _(e.message_key))
    except RedirectRefused as e:
        log_warning(request, str(e))
        return error_json(e.status_code, _(e.message_key))
    except ResolverError as e:
        log_error(request, f"Relay error: {str(e)}")
        return error_json(e.status_code, _("error.download_failed"))
    except Exception as e:
        log_error(request, f"Unexpected relay error: {str(e)}")
        return error_json(500, _("error.download_failed"))

    return StreamingResponse(
        body,
        media_type=relay.content_type,
        headers=headers,
        background=BackgroundTask(close),
    )
