import json
import logging
from typing import Any, Optional
import redis

logger = logging.getLogger(__name__)

NEARBY_STORES_PREFIX = "stores:nearby"
STORE_PRODUCTS_PREFIX = "products:store"


def nearby_stores_key(latitude: float, longitude: float, radius_km: float, limit: int) -> str:
    # 3 decimals is roughly a 111 m grid
    return f"{NEARBY_STORES_PREFIX}:{latitude:.3f}:{longitude:.3f}:{radius_km:g}:{limit}"


def store_products_key(store_id: int) -> str:
    return f"{STORE_PRODUCTS_PREFIX}:{store_id}"


class CacheService:
    """
    Best-effort JSON cache.

    Every failure is logged and swallowed: reads degrade to a miss and writes
    and deletes to no-ops, so a cache outage never fails the caller.
    """

    def __init__(self, redis_client: Optional[redis.Redis]):
        self.redis_client = redis_client

    def get(self, key: str) -> Optional[Any]:
        if self.redis_client is None:
            return None
        try:
            data = self.redis_client.get(key)
            return json.loads(data) if data else None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        if self.redis_client is None:
            return False
        try:
            self.redis_client.setex(key, ttl_seconds, json.dumps(value, default=str))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if self.redis_client is None:
            return False
        try:
            self.redis_client.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns how many went"""
        if self.redis_client is None:
            return 0
        try:
            keys = list(self.redis_client.scan_iter(match=pattern, count=500))
            if keys:
                self.redis_client.delete(*keys)
            return len(keys)
        except redis.RedisError as e:
            logger.warning(f"Cache pattern delete failed for {pattern}: {e}")
            return 0

    def invalidate_store(self, store_id: int) -> None:
        """Drop the store's product listing and every cached nearby-stores page"""
        self.delete(store_products_key(store_id))
        self.delete_pattern(f"{NEARBY_STORES_PREFIX}:*")
