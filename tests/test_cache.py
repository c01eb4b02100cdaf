"""Tests for the Redis voter cache wrapper."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from services.voting_api.cache import VOTED_KEY, VoterCache, build_cache


class FakeRedis:
    """Just the set commands the cache uses."""

    def __init__(self, fail: bool = False):
        self.sets = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def ping(self):
        self._check()
        return True

    async def sismember(self, key, value):
        self._check()
        return int(value in self.sets.get(key, set()))

    async def sadd(self, key, value):
        self._check()
        self.sets.setdefault(key, set()).add(value)
        return 1

    async def srem(self, key, value):
        self._check()
        members = self.sets.get(key, set())
        removed = int(value in members)
        members.discard(value)
        return removed

    async def delete(self, key):
        self._check()
        return int(self.sets.pop(key, None) is not None)


@pytest.mark.asyncio
class TestVoterCache:

    async def test_remember_then_has_voted(self):
        client = FakeRedis()
        cache = VoterCache(client)

        assert await cache.has_voted("abc") is False
        await cache.remember("abc")

        assert await cache.has_voted("abc") is True
        assert client.sets[VOTED_KEY] == {"abc"}

    async def test_clear(self):
        cache = VoterCache(FakeRedis())
        await cache.remember("abc")

        await cache.clear()

        assert await cache.has_voted("abc") is False

    async def test_forget(self):
        cache = VoterCache(FakeRedis())
        await cache.remember("abc")
        await cache.remember("def")

        await cache.forget("abc")

        assert await cache.has_voted("abc") is False
        assert await cache.has_voted("def") is True

    async def test_outage_falls_back_to_ledger(self):
        cache = VoterCache(FakeRedis(fail=True))

        assert await cache.has_voted("abc") is False
        await cache.remember("abc")
        await cache.forget("abc")
        assert await cache.check_health() is False

    async def test_clear_propagates_outage(self):
        cache = VoterCache(FakeRedis(fail=True))

        with pytest.raises(RedisConnectionError):
            await cache.clear()


def test_build_cache_disabled():
    assert build_cache(False, "redis://localhost:6379/0") is None


def test_build_cache_enabled_is_lazy():
    cache = build_cache(True, "redis://localhost:6379/0")

    assert isinstance(cache, VoterCache)
