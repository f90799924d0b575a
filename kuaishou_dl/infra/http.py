import httpx

from kuaishou_dl.config.settings import config
from kuaishou_dl.core.state import state


def create_http_client() -> httpx.AsyncClient:
    """Build the pooled upstream client. Redirects are followed by hand."""
    kwargs = {"follow_redirects": False}
    if config.http.timeout_seconds is not None:
        kwargs["timeout"] = config.http.timeout_seconds
    return httpx.AsyncClient(**kwargs)


def get_http_client() -> httpx.AsyncClient:
    """FastAPI dependency returning the shared keep-alive client"""
    if state.http_client is None or state.http_client.is_closed:
        state.http_client = create_http_client()
    return state.http_client


async def close_http_client() -> None:
    if state.http_client is not None:
        await state.http_client.aclose()
        state.http_client = None
