"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .attempt_limiter import AttemptLimiter
from .noop_limiter import NoopLimiter
from .email_sender import EmailMessage, EmailSender

__all__ = ['AttemptLimiter', 'NoopLimiter', 'EmailMessage', 'EmailSender']
