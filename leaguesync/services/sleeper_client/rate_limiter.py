"""Rate limiter for Sleeper API requests.

Token bucket kept in Redis so the API process and Celery workers share one
budget. Sleeper asks clients to stay well below 1000 calls per minute.
"""

import asyncio
import time

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

# Atomic token bucket. Returns {acquired, wait_seconds}.
TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local rate = tonumber(ARGV[1])
local burst = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local state = redis.call('HMGET', key, 'tokens', 'last_update')
local tokens = tonumber(state[1]) or burst
local last_update = tonumber(state[2]) or now

tokens = math.min(burst, tokens + (now - last_update) * rate)

if tokens >= 1 then
    redis.call('HMSET', key, 'tokens', tokens - 1, 'last_update', now)
    redis.call('EXPIRE', key, 60)
    return {1, 0}
end
return {0, tostring((1 - tokens) / rate)}
"""


class SleeperRateLimiter:
    """
    Token bucket rate limiter using Redis.

    Default: 10 requests/second with a burst of 20.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        rate: float = 10.0,
        burst: int = 20,
        key_prefix: str = "ratelimit:sleeper",
        max_wait: float = 10.0,
    ):
        """
        Initialize the rate limiter.

        Args:
            redis_client: Redis client for distributed state
            rate: Requests per second allowed
            burst: Maximum burst size
            key_prefix: Redis key prefix
            max_wait: Longest a caller blocks before proceeding anyway
        """
        self.redis = redis_client
        self.rate = rate
        self.burst = burst
        self.key_prefix = key_prefix
        self.max_wait = max_wait

    def _get_key(self, endpoint: str) -> str:
        return f"{self.key_prefix}:{endpoint}"

    async def acquire(self, endpoint: str = "default") -> tuple[bool, float]:
        """
        Try to take a token for the endpoint.

        Returns:
            (acquired, seconds until the next token)
        """
        try:
            result = await self.redis.eval(
                TOKEN_BUCKET_SCRIPT,
                1,
                self._get_key(endpoint),
                str(self.rate),
                str(self.burst),
                str(time.time()),
            )
        except redis.RedisError as e:
            # Fail open: a Redis outage must not stop score syncing
            logger.error("rate_limiter_error", error=str(e), endpoint=endpoint)
            return True, 0.0
        return int(result[0]) == 1, float(result[1])

    async def wait_if_needed(self, endpoint: str = "default") -> None:
        """Block until a token is available or max_wait has passed."""
        total_wait = 0.0
        while True:
            acquired, wait_time = await self.acquire(endpoint)
            if acquired:
                return
            if total_wait >= self.max_wait:
                logger.warning(
                    "rate_limiter_max_wait_exceeded",
                    endpoint=endpoint,
                    total_wait=total_wait,
                )
                return
            wait_time = min(max(wait_time, 0.05), self.max_wait - total_wait)
            await asyncio.sleep(wait_time)
            total_wait += wait_time
