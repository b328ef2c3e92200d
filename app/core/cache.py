import json
from typing import Any, Optional

from redis.asyncio import Redis

from app.core.config import settings

_redis: Optional[Redis] = None


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


def set_redis(client: Optional[Redis]) -> None:
    global _redis
    _redis = client


async def cache_json_get(key: str) -> Optional[Any]:
    val = await get_redis().get(key)
    return json.loads(val) if val else None


async def cache_json_set(key: str, data: Any, ttl: int) -> None:
    await get_redis().set(key, json.dumps(data), ex=ttl)


async def cache_delete(key: str) -> None:
    await get_redis().delete(key)
