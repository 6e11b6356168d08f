"""Shared rate-limit counter stores."""

from src.providers.rate_limit.redis_store import RedisRateLimitStore

__all__ = ["RedisRateLimitStore"]
