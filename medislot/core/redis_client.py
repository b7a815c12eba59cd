"""Redis client and doctor profile cache.

Only doctor profiles and doctor listings are cached. Available slots,
appointments and anything else a booking decision reads always come from
the database.
"""

import json
from typing import Any, cast
from uuid import UUID

import redis
import structlog

from medislot.config import settings

logger = structlog.get_logger()

DOCTOR_KEY_PREFIX = "doctor"
DOCTOR_LIST_PATTERN = f"{DOCTOR_KEY_PREFIX}:list:*"

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """Return True when Redis answers a ping."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def doctor_key(doctor_id: UUID) -> str:
    """Cache key of a single doctor profile."""
    return f"{DOCTOR_KEY_PREFIX}:{doctor_id}"


def doctor_list_key(**params: Any) -> str:
    """Cache key of one doctor listing page, stable in parameter order."""
    parts = ":".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{DOCTOR_KEY_PREFIX}:list:{parts}"


class CacheManager:
    """
    JSON cache on top of Redis.

    Cache failures never break a request: reads degrade to a miss, writes
    and deletes report failure.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """Get and deserialize a JSON value, or None on miss."""
        try:
            value = cast(str | None, self.redis.get(key))
            return json.loads(value) if value else None
        except (redis.RedisError, ValueError) as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Serialize and set JSON value in cache.

        Args:
            key: Cache key
            value: Value to serialize; UUIDs, dates and decimals become strings
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            json_value = json.dumps(value, default=str)
            if ttl:
                self.redis.setex(key, ttl, json_value)
            else:
                self.redis.set(key, json_value)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        try:
            self.redis.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Returns:
            Number of keys deleted
        """
        try:
            keys = cast(list[str], self.redis.keys(pattern))
            if keys:
                return cast(int, self.redis.delete(*keys))
            return 0
        except redis.RedisError as e:
            logger.warning("cache_delete_failed", pattern=pattern, error=str(e))
            return 0

    def invalidate_doctor(self, doctor_id: UUID | None = None) -> None:
        """Drop a doctor's cached profile (if given) and every cached listing."""
        if doctor_id is not None:
            self.delete(doctor_key(doctor_id))
        self.delete_pattern(DOCTOR_LIST_PATTERN)
