"""
Attempt limiter interface.
Allows swapping how sign-up and waitlist attempts are throttled.
"""

from abc import ABC, abstractmethod


class AttemptLimiter(ABC):
    """
    Interface for throttling admission attempts per client.

    Implementations:
    - NoopLimiter: No throttling
    - RedisAttemptLimiter: Fixed-window counters in Redis, fail open
    """

    @abstractmethod
    async def allow(self, scope: str, client_key: str) -> bool:
        """
        Count an attempt and decide whether it may proceed.

        Args:
            scope: Attempt family, e.g. "sign_up" or "waitlist"
            client_key: Who is attempting (client address)

        Returns:
            True if the attempt may proceed
            False if the client is over its limit
        """
        pass
