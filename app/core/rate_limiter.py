import redis.asyncio as redis


class RedisRateLimiter:
    """Fixed-window request counter kept in Redis."""

    def __init__(self, redis_client: redis.Redis, limit: int, window_seconds: int, prefix: str = "ratelimit"):
        self.redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix

    def build_key(self, *args) -> str:
        return ":".join(str(arg) for arg in (self.prefix, *args))

    async def hit(self, *key_parts) -> bool:
        """Count one hit for the key. Returns False once the window's limit is exceeded."""
        key = self.build_key(*key_parts)
        count, ttl = await self.redis.pipeline(transaction=True).incr(key).ttl(key).execute()
        # -1 means the counter has no TTL, either fresh or a previous EXPIRE was lost
        if ttl == -1:
            await self.redis.expire(key, self.window_seconds)
        return count <= self.limit
