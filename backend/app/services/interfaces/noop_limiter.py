"""
No-op limiter - every attempt proceeds.
Correctness never depends on the limiter; the ledger's atomic writes do.
"""

from app.services.interfaces.attempt_limiter import AttemptLimiter


class NoopLimiter(AttemptLimiter):
    """
    No throttling - always allow.

    Use when:
    - Development and tests
    - A reverse proxy already rate-limits these routes
    """

    async def allow(self, scope: str, client_key: str) -> bool:
        return True
