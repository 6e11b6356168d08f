"""Redis-backed fixed-window rate-limit counters.

``INCR`` and ``PEXPIRE ... NX`` run in one pipeline, so the window starts
on the first hit and later hits never extend it.  Shared by every worker
process pointed at the same Redis.
"""

from __future__ import annotations

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from src.interfaces.rate_limit_store import IRateLimitStore
from src.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_KEY_PREFIX = "ratelimit:"


class RedisRateLimitStore(IRateLimitStore):
    """Fixed-window counters in Redis.

    Parameters
    ----------
    redis_url:
        Connection URL, e.g. ``redis://localhost:6379/0``.
    client:
        Optional pre-built client (tests inject a fake here).
    """

    def __init__(self, redis_url: str = "", client: redis.Redis | None = None) -> None:
        if client is None:
            pool = redis.ConnectionPool.from_url(
                redis_url, decode_responses=True, max_connections=10
            )
            client = redis.Redis(connection_pool=pool)
        self._client = client

    async def hit(self, key: str, window_ms: int) -> tuple[int, int]:
        redis_key = f"{_KEY_PREFIX}{key}"
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.pexpire(redis_key, window_ms, nx=True)
                pipe.pttl(redis_key)
                count, _, ttl = await pipe.execute()
        except RedisError as exc:
            raise ProviderUnavailableError(
                message=f"Redis rate-limit store unavailable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        reset_in = int(ttl) if ttl and int(ttl) > 0 else window_ms
        return int(count), reset_in

    async def close(self) -> None:
        await self._client.aclose()

    def get_provider_name(self) -> str:
        return "redis"
