"""Redis connection, fixed-window rate limiting and a JSON cache.

Redis is optional at runtime: every helper here degrades to "allow" or
"miss" when the server cannot be reached.
"""

import json
from typing import Any, cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def _build_client() -> redis.Redis:
    options: dict[str, Any] = {
        "decode_responses": settings.redis_decode_responses,
        "socket_connect_timeout": settings.redis_socket_timeout,
        "socket_timeout": settings.redis_socket_timeout,
        "health_check_interval": 30,
    }
    if settings.redis_url:
        return redis.Redis.from_url(settings.redis_url, **options)
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username if settings.redis_password else None,
        password=settings.redis_password or None,
        ssl=settings.redis_ssl,
        **options,
    )


def get_redis_client() -> redis.Redis:
    """Process-wide Redis client, created lazily; used as a FastAPI dependency."""
    global _redis_client
    if _redis_client is None:
        _redis_client = _build_client()
    return _redis_client


async def check_redis_connection() -> bool:
    """Check if Redis answers PING."""
    try:
        return bool(get_redis_client().ping())
    except Exception:
        return False


def close_redis_connection() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class RateLimiter:
    """Fixed-window hit counter."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def check_rate_limit(self, key: str, limit: int, window: int = 60) -> bool:
        """
        Record one hit on ``key``.

        Args:
            key: Counter key, e.g. ``rate_limit:public:<ip>``
            limit: Hits allowed per window
            window: Window length in seconds, started by the first hit

        Returns:
            False once the window holds more than ``limit`` hits. Redis errors
            count as allowed.
        """
        try:
            hits = int(cast(int, self.redis.incr(key)))
        except Exception as e:
            logger.warning("rate_limit_check_failed", key=key, error=str(e))
            return True

        if hits == 1:
            try:
                self.redis.expire(key, window)
            except Exception as e:
                logger.warning("rate_limit_expire_failed", key=key, error=str(e))
        return hits <= limit


class CacheManager:
    """JSON values in Redis; failures read as misses and report False on writes."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        try:
            raw = cast(str | None, self.redis.get(key))
        except Exception as e:
            logger.debug("cache_read_failed", key=key, error=str(e))
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_value_corrupt", key=key)
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value`` as JSON; dates, times and UUIDs are stringified.

        Args:
            key: Cache key
            value: JSON-serialisable value
            ttl: Expiry in seconds, or None to keep until deleted

        Returns:
            True if Redis accepted the write
        """
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(key, ttl, payload)
            else:
                self.redis.set(key, payload)
        except Exception as e:
            logger.debug("cache_write_failed", key=key, error=str(e))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False
        return True
