from dataclasses import dataclass
from typing import Optional

import httpx
from redis.asyncio import Redis


@dataclass
class RuntimeState:
    """
    Process-wide resources opened at startup.
    redis stays None when no URL is configured or the server is unreachable;
    http_client is created lazily by the first request that needs it.
    """
    redis: Optional[Redis] = None
    http_client: Optional[httpx.AsyncClient] = None


state = RuntimeState()
