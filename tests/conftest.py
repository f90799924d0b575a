import httpx
import pytest

from kuaishou_dl.config.settings import config
from kuaishou_dl.core.state import state
from kuaishou_dl.infra.http import get_http_client
from kuaishou_dl.main import app


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture(autouse=True)
def isolated_runtime():
    """No Redis and no DNS lookups unless a test opts back in"""
    original_ssrf = config.security.enable_ssrf_protection
    config.security.enable_ssrf_protection = False
    state.redis = None
    yield
    config.security.enable_ssrf_protection = original_ssrf


@pytest.fixture
def upstream():
    """Route the app's outbound requests to a handler supplied by the test"""

    def install(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app.dependency_overrides[get_http_client] = lambda: client
        return client

    yield install
    app.dependency_overrides.pop(get_http_client, None)


class ExhaustedWindow:
    """Redis stand-in whose fixed-window script always reports the limit hit"""

    retry_after = 42

    def register_script(self, script):
        async def run(keys, args):
            return [0, self.retry_after]
        return run


@pytest.fixture
def exhausted_rate_limit(monkeypatch):
    window = ExhaustedWindow()
    monkeypatch.setattr("kuaishou_dl.infra.rate_limit.get_redis", lambda: window)
    return window
