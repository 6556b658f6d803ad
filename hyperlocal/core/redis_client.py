from functools import lru_cache
import redis
from hyperlocal.core.config import get_settings


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Shared Redis connection pool; nothing connects until the first command"""
    return redis.Redis.from_url(
        get_settings().redis_url,
        decode_responses=True,
        socket_timeout=1.0,
        socket_connect_timeout=1.0,
    )
