"""Redis-based sliding window rate limiter keyed by client address."""
import logging
import time
import uuid

from core.rate_limit_config import (
    RATE_LIMITS,
    WINDOW_SECONDS,
    OperationType,
    RateLimitResult,
)
from core.redis import RedisClient

logger = logging.getLogger(__name__)


class RedisRateLimiter:
    """Per-minute sliding window limiter. Fails open when Redis is unavailable."""

    def __init__(self, redis_client: RedisClient | None) -> None:
        self.redis_client = redis_client

    async def check(self, client_key: str, operation_type: OperationType) -> RateLimitResult:
        """Check whether the request is allowed and return header info."""
        limit = RATE_LIMITS[operation_type].requests_per_minute
        allow = RateLimitResult(allowed=True, limit=limit, remaining=limit, reset=0, retry_after=0)

        redis_client = self.redis_client
        if (
            redis_client is None
            or not redis_client.is_connected
            or redis_client.sliding_window_sha is None
        ):
            return allow

        now = int(time.time())
        key = f"rate:{client_key}:{operation_type.value}"
        result = await redis_client.evalsha(
            redis_client.sliding_window_sha,
            1,
            key,
            now,
            WINDOW_SECONDS,
            limit,
            str(uuid.uuid4()),
        )
        if result is None:
            return allow

        allowed, remaining, retry_after = result
        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={"client": client_key, "operation": operation_type.value},
            )
        return RateLimitResult(
            allowed=bool(allowed),
            limit=limit,
            remaining=max(0, remaining),
            reset=now + WINDOW_SECONDS,
            retry_after=max(0, retry_after) if not allowed else 0,
        )
