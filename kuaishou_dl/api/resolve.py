import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from kuaishou_dl.core.errors import MediaNotFound, ResolverError
from kuaishou_dl.core.logging import log_error, log_info
from kuaishou_dl.i18n import i18n
from kuaishou_dl.infra.http import get_http_client
from kuaishou_dl.infra.rate_limit import rate_limiter
from kuaishou_dl.models.request import ResolveRequest
from kuaishou_dl.models.response import ResolveResponse
from kuaishou_dl.services.resolver import VideoResolveService
from kuaishou_dl.utils.locale import safe_url_for_log

router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ResolveResponse(success=False, error=message).to_json(),
    )


@router.post(
    "/api/fetch-video",
    response_model=ResolveResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limiter)],
)
async def fetch_video(
    request: Request,
    resolve_request: ResolveRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Resolve a Kuaishou page URL into downloadable media URLs"""

    _ = i18n.for_request(request)

    safe_url = safe_url_for_log(resolve_request.url)
    log_info(request, i18n.get("log.resolving", url=safe_url))

    try:
        descriptor = await VideoResolveService.resolve(client, resolve_request.url)
    except MediaNotFound as e:
        log_info(request, i18n.get("log.not_found", url=safe_url))
        return error_response(e.status_code, _(e.message_key))
    except ResolverError as e:
        log_error(request, f"Resolve error: {str(e)}")
        return error_response(e.status_code, str(e) or _(e.message_key))
    except Exception as e:
        log_error(request, f"Unexpected resolve error: {str(e)}")
        return error_response(500, str(e) or _("error.fetch_failed"))

    log_info(request, i18n.get("log.resolved", title=descriptor.title, author=descriptor.author))
    return ResolveResponse(success=True, data=descriptor)
