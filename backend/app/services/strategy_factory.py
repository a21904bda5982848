"""
Strategy factory.
Configures which attempt limiter and email sender the app uses.
"""

from typing import Optional

from app.core.config import get_settings
from app.services.email_service import LoggingEmailSender
from app.services.interfaces.attempt_limiter import AttemptLimiter
from app.services.interfaces.email_sender import EmailSender
from app.services.interfaces.noop_limiter import NoopLimiter
from app.services.rate_limit_service import RedisAttemptLimiter


def build_attempt_limiter() -> AttemptLimiter:
    """
    Build the configured limiter.

    - none (default): NoopLimiter
    - redis: RedisAttemptLimiter, failing open when Redis is down

    Selected via RATE_LIMIT_STRATEGY env var.
    """
    settings = get_settings()
    if settings.RATE_LIMIT_STRATEGY == "redis":
        return RedisAttemptLimiter(
            limit=settings.SIGN_UP_ATTEMPT_LIMIT,
            window_seconds=settings.SIGN_UP_ATTEMPT_WINDOW_SECONDS,
        )
    return NoopLimiter()


# Singleton instances
_limiter: Optional[AttemptLimiter] = None
_email_sender: Optional[EmailSender] = None


def get_attempt_limiter() -> AttemptLimiter:
    global _limiter
    if _limiter is None:
        _limiter = build_attempt_limiter()
    return _limiter


def get_email_sender() -> EmailSender:
    global _email_sender
    if _email_sender is None:
        _email_sender = LoggingEmailSender()
    return _email_sender
