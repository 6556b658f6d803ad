import uuid
import logging
from dataclasses import dataclass
from typing import Optional
import redis

logger = logging.getLogger(__name__)

# Delete the key only while it still holds our token
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@dataclass(frozen=True)
class LockToken:
    key: str
    value: str
    ttl_seconds: int


def store_lock_key(store_id: int) -> str:
    return f"lock:inventory:store:{store_id}"


class DistributedLockService:
    """
    Advisory cross-process lock backed by Redis.

    acquire() makes a single SET NX EX attempt and never queues; callers treat
    a None result as retryable. The TTL bounds how long a crashed holder can
    block others. release() only deletes the key if the caller still owns it.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client
        self._release_script = redis_client.register_script(RELEASE_SCRIPT)

    def acquire(self, key: str, ttl_seconds: int) -> Optional[LockToken]:
        value = uuid.uuid4().hex
        try:
            acquired = self.redis_client.set(key, value, nx=True, ex=ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Lock service unavailable while acquiring {key}: {e}")
            return None

        if not acquired:
            logger.info(f"Lock {key} is held by another worker")
            return None
        return LockToken(key=key, value=value, ttl_seconds=ttl_seconds)

    def release(self, token: LockToken) -> bool:
        try:
            released = self._release_script(keys=[token.key], args=[token.value])
        except redis.RedisError as e:
            # The TTL still frees the key
            logger.warning(f"Failed to release lock {token.key}: {e}")
            return False

        if not released:
            logger.warning(f"Lock {token.key} expired or was taken over before release")
        return bool(released)
