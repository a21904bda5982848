"""
Redis-backed attempt limiter for sign-up and waitlist routes.
Implements AttemptLimiter with fixed-window counters.

The counter update runs as one Lua script (INCR plus EXPIRE when the key
has no TTL), so a window key can never be left without an expiry.

Circuit Breaker Pattern:
  On Redis failure the limiter "fails open" (allows the attempt).
  Throttling is advisory: code claims and waitlist joins stay correct
  without it because the database enforces single use and uniqueness.
  A Redis outage therefore degrades enumeration protection, never admission.
"""

import os
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from app.core.logging import get_logger
from app.core.metrics import record_rate_limited, redis_connection_errors
from app.infrastructure.redis_client import get_redis
from app.services.interfaces.attempt_limiter import AttemptLimiter

logger = get_logger(__name__)

# Load Lua script
SCRIPT_PATH = os.path.join(os.path.dirname(__file__), '../infrastructure/attempt_window.lua')
with open(SCRIPT_PATH, 'r') as f:
    ATTEMPT_WINDOW_SCRIPT = f.read()

ClientGetter = Callable[[], Awaitable[Optional[redis.Redis]]]


class RedisAttemptLimiter(AttemptLimiter):
    """
    Fixed-window counter per (scope, client).

    Strategy: count the attempt atomically in Redis,
    reject once the count passes the limit.
    """

    def __init__(self, limit: int, window_seconds: int, client_getter: ClientGetter = get_redis):
        self.limit = limit
        self.window_seconds = window_seconds
        self.client_getter = client_getter

    async def allow(self, scope: str, client_key: str) -> bool:
        client = await self.client_getter()
        if client is None:
            return True

        key = f"attempts:{scope}:{client_key}"
        try:
            script = client.register_script(ATTEMPT_WINDOW_SCRIPT)
            count = int(await script(keys=[key], args=[self.window_seconds]))
        except (redis.RedisError, OSError) as e:
            redis_connection_errors.inc()
            logger.warning("attempt_limiter_unavailable", scope=scope, error=str(e))
            return True

        if count > self.limit:
            record_rate_limited(scope)
            logger.info("attempt_rate_limited", scope=scope, client=client_key, count=count)
            return False
        return True
