from fastapi import HTTPException, Request
from redis.exceptions import RedisError

from kuaishou_dl.config.settings import config
from kuaishou_dl.i18n import i18n
from kuaishou_dl.infra.redis import get_redis
from kuaishou_dl.utils.hash import hash_stable

# INCR the window counter, arming its expiry on first hit.
# Returns {allowed, seconds until the window resets}.
FIXED_WINDOW_LUA = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
if current > tonumber(ARGV[1]) then
    return {0, redis.call('TTL', KEYS[1])}
end
return {1, 0}
"""


class RedisRateLimiter:
    """
    Per-client, per-route fixed-window limiter for the resolve and download routes.
    Without Redis, or when Redis misbehaves, every request is let through.
    """

    key_prefix = "rate"

    def key_for(self, request: Request) -> str:
        client_ip = request.client.host if request.client else "unknown"
        # Client addresses are not stored in Redis as-is
        return f"{self.key_prefix}:{hash_stable(client_ip, request.url.path)}"

    async def __call__(self, request: Request) -> None:
        if not config.rate_limit.enabled:
            return

        redis = get_redis()
        if redis is None:
            return

        script = redis.register_script(FIXED_WINDOW_LUA)
        try:
            allowed, retry_after = await script(
                keys=[self.key_for(request)],
                args=[config.rate_limit.max_requests, config.rate_limit.window_seconds],
            )
        except RedisError:
            return

        if not allowed:
            _ = i18n.for_request(request)
            raise HTTPException(
                status_code=429,
                detail=_("error.rate_limit", seconds=retry_after),
                headers={"Retry-After": str(retry_after)},
            )


rate_limiter = RedisRateLimiter()
