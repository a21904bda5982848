"""
Classification of storage-layer exceptions into transient or permanent
failure causes.

Transient means "likely to succeed if retried": lock contention, timeouts,
dropped connections, serialization conflicts. Everything else is permanent.
"""

import asyncio
from typing import Optional

from sqlalchemy import exc as sa_exc

from app.services.outcomes import FailureCause

UNIQUE_VIOLATION = "23505"

TRANSIENT_SQLSTATES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "57014",  # query_canceled (statement timeout)
    "53300",  # too_many_connections
})


def _sqlstate(orig: Optional[BaseException]) -> Optional[str]:
    """SQLSTATE from a DBAPI error, looking through the asyncpg adapter."""
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (sa_exc.TimeoutError, sa_exc.DisconnectionError)):
        return True
    if isinstance(exc, sa_exc.DBAPIError):
        if exc.connection_invalidated:
            return True
        code = _sqlstate(exc.orig)
        if code is not None and (code in TRANSIENT_SQLSTATES or code.startswith("08")):
            return True
        # Covers SQLite "database is locked" and refused connections
        return isinstance(exc, sa_exc.OperationalError)
    return False


def classify_exception(exc: BaseException) -> FailureCause:
    message = str(getattr(exc, "orig", None) or exc) or exc.__class__.__name__
    return FailureCause(
        message=message,
        error_type=exc.__class__.__name__,
        transient=_is_transient(exc),
    )


def is_unique_violation(exc: sa_exc.IntegrityError, *markers: str) -> bool:
    """
    True when `exc` is a uniqueness violation whose message names one of
    `markers` (a constraint name, or a `table.column` for SQLite).
    """
    text = str(exc.orig)
    code = _sqlstate(exc.orig)
    if code is not None:
        if code != UNIQUE_VIOLATION:
            return False
    elif "UNIQUE constraint failed" not in text:
        return False
    return any(marker in text for marker in markers)
