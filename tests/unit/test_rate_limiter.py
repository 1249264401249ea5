"""Unit tests for the per-platform scraper rate limiter."""

import redis.asyncio as redis

from app.services.scrapers import rate_limiter as rate_limiter_module
from app.services.scrapers.rate_limiter import ScraperRateLimiter


class ScriptedRedis:
    """Returns queued token bucket replies and records the keys used."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.keys = []

    async def eval(self, script, numkeys, key, *args):
        self.keys.append(key)
        return self.replies.pop(0)


class BrokenRedis:
    async def eval(self, *args):
        raise redis.ConnectionError("connection refused")

    async def hgetall(self, key):
        raise redis.ConnectionError("connection refused")


class TestScraperRateLimiter:
    async def test_acquire_uses_platform_key(self):
        fake = ScriptedRedis([[1, 0]])
        limiter = ScraperRateLimiter(fake)

        assert await limiter.acquire("nyrr") is True
        assert fake.keys == ["ratelimit:scraper:nyrr"]

    async def test_denied(self):
        limiter = ScraperRateLimiter(ScriptedRedis([[0, "0.5"]]))
        assert await limiter.acquire("mika") is False

    async def test_fails_open_when_redis_down(self):
        limiter = ScraperRateLimiter(BrokenRedis())
        assert await limiter.acquire("rtrt") is True

    async def test_waits_until_token(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(rate_limiter_module.asyncio, "sleep", fake_sleep)
        limiter = ScraperRateLimiter(ScriptedRedis([[0, "1"], [0, "1"], [1, 0]]), rate=2.0)

        await limiter.wait_if_needed("nyrr")

        assert sleeps == [0.5, 0.5]

    async def test_gives_up_after_max_wait(self, monkeypatch):
        async def fake_sleep(seconds):
            return None

        monkeypatch.setattr(rate_limiter_module.asyncio, "sleep", fake_sleep)
        limiter = ScraperRateLimiter(ScriptedRedis([[0, "1"]] * 10), rate=1.0, max_wait=3.0)

        await limiter.wait_if_needed("nyrr")

        assert len(limiter.redis.replies) == 6

    async def test_stats_on_error(self):
        stats = await ScraperRateLimiter(BrokenRedis()).get_stats("nyrr")
        assert stats["platform"] == "nyrr"
        assert "error" in stats
