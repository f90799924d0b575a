from typing import Optional
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from rich.console import Console
from kuaishou_dl.config.settings import config
from kuaishou_dl.core.state import state

console = Console()

async def init_redis() -> None:
    """Initialize Redis connection; the API keeps working without it"""
    if not config.redis.url:
        console.print("[dim]Redis disabled (no URL configured)[/dim]")
        state.redis = None
        return

    try:
        redis_client = aioredis.from_url(
            config.redis.url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=config.redis.socket_timeout
        )
        await redis_client.ping()
        state.redis = redis_client
        console.print("[green]✓ Redis connected[/green]")
    except (RedisError, OSError) as e:
        console.print(f"[yellow]⚠ Redis connection failed: {str(e)}[/yellow]")
        state.redis = None

def get_redis() -> Optional[aioredis.Redis]:
    """Get Redis client from state"""
    return state.redis

async def close_redis() -> None:
    """Close Redis connection"""
    if state.redis:
        await state.redis.aclose()
        state.redis = None
        console.print("[dim]✓ Redis connection closed[/dim]")
