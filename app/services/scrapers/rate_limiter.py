"""Rate limiter for outbound results-site requests.

Token bucket per platform, held in Redis so every worker process shares
one budget against the same third-party site.
"""

import asyncio
import time
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

# Atomic token bucket. Returns {1, 0} on success, {0, wait_seconds} otherwise.
TOKEN_BUCKET_LUA = """
local key = KEYS[1]
local rate = tonumber(ARGV[1])
local burst = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local refill_interval = tonumber(ARGV[4])

local state = redis.call('HMGET', key, 'tokens', 'last_update')
local tokens = tonumber(state[1]) or burst
local last_update = tonumber(state[2]) or now

local elapsed = now - last_update
tokens = math.min(burst, tokens + elapsed * rate)

if tokens >= 1 then
    tokens = tokens - 1
    redis.call('HMSET', key, 'tokens', tokens, 'last_update', now)
    redis.call('EXPIRE', key, 300)
    return {1, 0}
end

return {0, refill_interval - (elapsed % refill_interval)}
"""


class ScraperRateLimiter:
    """
    Per-platform token bucket in Redis.

    Fails open: if Redis is unreachable the request goes ahead.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        rate: float = 1.0,
        burst: int = 3,
        key_prefix: str = "ratelimit:scraper",
        max_wait: float = 30.0,
    ):
        """
        Initialize the rate limiter.

        Args:
            redis_client: Redis client for distributed state
            rate: Requests per second allowed per platform
            burst: Maximum burst size per platform
            key_prefix: Redis key prefix
            max_wait: Longest a caller blocks before going ahead anyway
        """
        self.redis = redis_client
        self.rate = rate
        self.burst = burst
        self.key_prefix = key_prefix
        self.max_wait = max_wait
        self.refill_interval = 1.0 / rate

    def _get_key(self, platform: str) -> str:
        return f"{self.key_prefix}:{platform}"

    async def acquire(self, platform: str) -> bool:
        """Try to take one token for the platform."""
        try:
            result = await self.redis.eval(
                TOKEN_BUCKET_LUA,
                1,
                self._get_key(platform),
                str(self.rate),
                str(self.burst),
                str(time.time()),
                str(self.refill_interval),
            )
        except Exception as e:
            logger.error("scraper_rate_limiter_error", error=str(e), platform=platform)
            return True

        acquired = int(result[0]) == 1
        if not acquired:
            logger.debug("scraper_rate_limited", platform=platform, wait_time=result[1])
        return acquired

    async def wait_if_needed(self, platform: str) -> None:
        """Block until a token is available or max_wait elapses."""
        total_wait = 0.0
        while not await self.acquire(platform):
            if total_wait >= self.max_wait:
                logger.warning(
                    "scraper_rate_limiter_max_wait_exceeded",
                    platform=platform,
                    total_wait=total_wait,
                )
                return
            step = min(self.refill_interval, self.max_wait - total_wait, 1.0)
            await asyncio.sleep(step)
            total_wait += step

    async def get_stats(self, platform: str) -> dict[str, Any]:
        """Current bucket state for a platform."""
        try:
            state = await self.redis.hgetall(self._get_key(platform))
        except Exception as e:
            logger.error("scraper_rate_limiter_stats_error", error=str(e))
            return {"platform": platform, "error": str(e)}
        return {
            "platform": platform,
            "tokens": float(state.get(b"tokens", self.burst)),
            "last_update": float(state.get(b"last_update", 0)),
            "rate": self.rate,
            "burst": self.burst,
        }
