"""
Redis-backed fixed-window rate limiter.

One counter per ``rate_limit:{operation}:{identifier}`` key; the first hit
in a window sets the key's TTL, so counters expire on their own and are
shared by every worker pointed at the same Redis.
"""
from dataclasses import dataclass
import time

import redis

from shared.core import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    limited: bool
    count: int
    limit: int
    remaining: int
    reset_at: int  # epoch seconds

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class RateLimiter:
    def __init__(self, client: redis.Redis):
        self.redis = client

    @staticmethod
    def _key(operation: str, identifier: str) -> str:
        return f"rate_limit:{operation}:{identifier}"

    def hit(self, operation: str, identifier: str, max_count: int, window_seconds: int) -> RateLimitResult:
        """
        Count one attempt and report whether the caller is over the limit.

        Fails open: when Redis is unreachable the attempt is allowed and the
        error logged, so a cache outage never blocks checkout.
        """
        key = self._key(operation, identifier)
        now = int(time.time())
        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, window_seconds)
            ttl = self.redis.ttl(key)
            if ttl is None or ttl < 0:
                # Key lost its expiry between INCR and EXPIRE
                self.redis.expire(key, window_seconds)
                ttl = window_seconds
        except redis.RedisError as e:
            logger.error(f"Rate limiter error: {e}")
            return RateLimitResult(False, 0, max_count, max_count, now + window_seconds)

        result = RateLimitResult(
            limited=count > max_count,
            count=count,
            limit=max_count,
            remaining=max(0, max_count - count),
            reset_at=now + ttl,
        )
        if result.limited:
            logger.warning(
                f"Rate limit exceeded for {operation}",
                extra={'extra_fields': {'identifier': identifier, 'count': count, 'resets_in': ttl}},
            )
        return result
