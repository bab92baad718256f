"""
Redis Module - Upstash Redis client for shared cart snapshots

Provides a lazily created async Upstash Redis client and the key/TTL
constants used by the Redis-backed cart storage.
"""

from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from cartsync.config import CART_TTL, UPSTASH_REDIS_REST_URL, UPSTASH_REDIS_REST_TOKEN


_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key names."""

    CART = "cartItems"  # cartItems:{scope}

    @staticmethod
    def cart_key(scope: Optional[str] = None) -> str:
        return f"{RedisKeys.CART}:{scope}" if scope else RedisKeys.CART


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = CART_TTL  # 0 disables expiry
