from redis.asyncio import Redis as AsyncRedis

from homecuistot.settings import settings

_redis_async: AsyncRedis | None = None


async def get_redis() -> AsyncRedis:
    global _redis_async
    if _redis_async is None:
        _redis_async = AsyncRedis.from_url(settings.redis_url, decode_responses=True)
    return _redis_async
