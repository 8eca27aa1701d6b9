# app/infra/cache/redis_cache.py
import os
from typing import Optional
import redis.asyncio as aioredis

from app.domain.ports import CachePort


DEFAULT_TTL = int(os.getenv("RUN_STATE_TTL_SECONDS", "604800"))  # 7 days


class RedisCache(CachePort):
    """
    Thin async Redis wrapper used for short-lived orchestration state.

        hset/hincrby/hgetall  counters & metadata hashes
        from_env()          construct from REDIS_URL
    """
    def __init__(self, client: Optional[aioredis.Redis] = None):
        self.r = client or aioredis.from_url(
            os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            encoding="utf-8",
            decode_responses=True,
        )

    @classmethod
    def from_env(cls):
        url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        return cls(aioredis.from_url(url, encoding="utf-8", decode_responses=True))

    async def ping(self) -> bool:
        return bool(await self.r.ping())

    # ------- Hash helpers (run counters / metadata) -------
    async def hset(self, key: str, mapping: dict, ttl: Optional[int] = None):
        if not mapping:
            return
        await self.r.hset(key, mapping={k: str(v) for k, v in mapping.items()})
        await self.r.expire(key, ttl or DEFAULT_TTL)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        return int(await self.r.hincrby(key, field, amount))

    async def hgetall(self, key: str) -> dict:
        return await self.r.hgetall(key)
