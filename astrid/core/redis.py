from typing import Optional

from redis.asyncio import Redis
from astrid.core.config import settings

_redis: Optional[Redis] = None

def redis_client() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis(host=settings.REDIS_HOST, port=settings.REDIS_PORT, db=settings.REDIS_DB, decode_responses=True)
    return _redis

async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None

INSTANCE_LOCK_PREFIX = "lock:instance:"

def instance_lock_key(user_id: str) -> str:
    return f"{INSTANCE_LOCK_PREFIX}{user_id}"
