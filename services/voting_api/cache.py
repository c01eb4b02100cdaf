"""Redis set of fingerprints that already voted."""
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

VOTED_KEY = "voted_fingerprints"


class VoterCache:
    """
    Fast-path duplicate check in front of the vote ledger.

    The ledger stays authoritative: a hit is confirmed against it, and a miss
    (or Redis being down) leaves the decision to the store.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "VoterCache":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    async def initialize(self):
        await self.client.ping()
        logger.info("Redis connection established")

    async def has_voted(self, fingerprint: str) -> bool:
        try:
            return bool(await self.client.sismember(VOTED_KEY, fingerprint))
        except RedisError as e:
            logger.warning(f"Redis lookup failed, falling back to ledger: {e}")
            return False

    async def remember(self, fingerprint: str) -> None:
        try:
            await self.client.sadd(VOTED_KEY, fingerprint)
        except RedisError as e:
            logger.warning(f"Failed to cache voter fingerprint: {e}")

    async def forget(self, fingerprint: str) -> None:
        try:
            await self.client.srem(VOTED_KEY, fingerprint)
        except RedisError as e:
            logger.warning(f"Failed to drop cached voter fingerprint: {e}")

    async def clear(self) -> None:
        await self.client.delete(VOTED_KEY)
        logger.info("Voter cache cleared")

    async def check_health(self) -> bool:
        try:
            await self.client.ping()
            return True
        except RedisError as e:
            logger.error(f"Redis health check error: {e}")
            return False

    async def close(self):
        await self.client.close()


def build_cache(enabled: bool, url: str) -> Optional[VoterCache]:
    return VoterCache.from_url(url) if enabled else None
