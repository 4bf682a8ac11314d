import asyncio
import logging
import uuid
from typing import Optional

from fastapi import status
from redis.exceptions import RedisError

from astrid.core.config import settings
from astrid.core.error_codes import ErrorCode
from astrid.core.exceptions import raise_error
from astrid.core.redis import redis_client, instance_lock_key

logger = logging.getLogger(__name__)

_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

class RedisLock:
    """SET NX EX lock; waits up to `wait_seconds` before giving up with 409."""

    def __init__(self, key: str, ttl_seconds: int, wait_seconds: float = 0.0, retry_interval: float = 0.1):
        self.key = key
        self.ttl = ttl_seconds
        self.wait = wait_seconds
        self.retry_interval = retry_interval
        self._token: Optional[str] = None

    async def __aenter__(self):
        token = uuid.uuid4().hex
        r = redis_client()
        deadline = asyncio.get_running_loop().time() + self.wait
        while True:
            try:
                acquired = await r.set(self.key, token, nx=True, ex=self.ttl)
            except RedisError as exc:
                logger.error("lock %s: redis unavailable: %s", self.key, exc)
                raise_error(ErrorCode.REDIS_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE, "Lock service unavailable")
            if acquired:
                self._token = token
                return self
            if asyncio.get_running_loop().time() >= deadline:
                raise_error(
                    ErrorCode.INSTANCE_BUSY,
                    status.HTTP_409_CONFLICT,
                    "Another operation on this instance is in progress",
                )
            await asyncio.sleep(self.retry_interval)

    async def __aexit__(self, exc_type, exc, tb):
        if self._token is None:
            return
        try:
            await redis_client().eval(_RELEASE_LUA, 1, self.key, self._token)
        except RedisError as err:
            # the TTL frees the key eventually
            logger.warning("lock %s: release failed: %s", self.key, err)
        finally:
            self._token = None

def instance_lock(user_id: str) -> RedisLock:
    return RedisLock(
        instance_lock_key(user_id),
        ttl_seconds=settings.INSTANCE_LOCK_TTL_SECONDS,
        wait_seconds=settings.INSTANCE_LOCK_WAIT_SECONDS,
    )
