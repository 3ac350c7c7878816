import json
from datetime import date
from typing import Any, Optional

import redis.asyncio as redis
import structlog

from booking_engine.core.config import settings

logger = structlog.get_logger(__name__)

AVAILABLE_SLOTS_PREFIX = "available_slots"


class RedisClient:
    """Redis client for the short-lived available-slots cache."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.redis_pool = None

    @property
    def is_enabled(self) -> bool:
        return bool(self.url)

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
                socket_keepalive_options={},
            )

            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def close(self):
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Set a key-value pair in Redis."""
        if not self.is_enabled:
            return False
        try:
            client = await self.get_redis()
            serialized_value = (
                json.dumps(value) if not isinstance(value, str) else value
            )

            if expire:
                return await client.setex(key, expire, serialized_value)
            return await client.set(key, serialized_value)

        except Exception as e:
            logger.error("Redis SET error", key=key, exc_info=e)
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from Redis."""
        if not self.is_enabled:
            return None
        try:
            client = await self.get_redis()
            value = await client.get(key)

            if value is None:
                return None

            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value

        except Exception as e:
            logger.error("Redis GET error", key=key, exc_info=e)
            return None

    async def delete(self, *keys: str) -> bool:
        """Delete keys from Redis."""
        if not self.is_enabled or not keys:
            return False
        try:
            client = await self.get_redis()
            result = await client.delete(*keys)
            return result > 0
        except Exception as e:
            logger.error("Redis DELETE error", keys=keys, exc_info=e)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        if not self.is_enabled:
            return 0
        try:
            client = await self.get_redis()
            keys = [key async for key in client.scan_iter(match=pattern)]
            if not keys:
                return 0
            return await client.delete(*keys)
        except Exception as e:
            logger.error("Redis pattern DELETE error", pattern=pattern, exc_info=e)
            return 0

    # Available-slots cache

    @staticmethod
    def available_slots_key(
        service_id: int, on_date: date, staff_id: Optional[int] = None
    ) -> str:
        staff_part = staff_id if staff_id is not None else "any"
        return f"{AVAILABLE_SLOTS_PREFIX}:{service_id}:{staff_part}:{on_date.isoformat()}"

    async def get_available_slots(
        self, service_id: int, on_date: date, staff_id: Optional[int] = None
    ) -> Optional[dict]:
        return await self.get(self.available_slots_key(service_id, on_date, staff_id))

    async def set_available_slots(
        self,
        service_id: int,
        on_date: date,
        staff_id: Optional[int],
        payload: dict,
    ) -> bool:
        return await self.set(
            self.available_slots_key(service_id, on_date, staff_id),
            payload,
            expire=settings.AVAILABLE_SLOTS_CACHE_TTL_SECONDS,
        )

    async def invalidate_available_slots(
        self, service_id: int, on_date: date, staff_id: Optional[int] = None
    ) -> None:
        """Drop cached slots touched by a booking change on one date."""
        await self.delete(self.available_slots_key(service_id, on_date))
        if staff_id is not None:
            await self.delete_pattern(
                f"{AVAILABLE_SLOTS_PREFIX}:*:{staff_id}:{on_date.isoformat()}"
            )

    async def invalidate_staff_slots(self, staff_id: int) -> None:
        """Drop every cached slot list computed for a staff member."""
        await self.delete_pattern(f"{AVAILABLE_SLOTS_PREFIX}:*:{staff_id}:*")


# Global Redis client instance
redis_client = RedisClient(settings.REDIS_URL)
