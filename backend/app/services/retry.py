"""
Retry wrapper for data-access operations.

RETRY STRATEGY: Outcome-driven retry with exponential backoff
==============================================================

Problem:
  A retry loop that only watches for raised exceptions silently skips
  operations that report failure through their return value. Those calls
  look "successful" to the harness and are never retried.

Solution:
  Operations return an Outcome. The wrapper retries when the returned
  outcome is a transient failure. If an operation still raises a storage
  exception, that exception is classified and treated exactly like the
  equivalent returned failure, so both channels lead to the same decision.

  1. Run the operation
  2. Business outcome or success -> return it (one attempt consumed)
  3. Permanent failure -> return it immediately
  4. Transient failure -> sleep base_delay * multiplier^(attempt-1), go to 1
     (an attempt that outlives attempt_timeout_seconds is cancelled and
     counts as a transient failure)
  5. Out of attempts -> return the last failure, cause intact
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import AdmissionConfig
from app.core.logging import get_logger
from app.core.metrics import record_retry, record_terminal_failure
from app.services.errors import classify_exception
from app.services.outcomes import Outcome

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Outcome]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 10
    backoff_multiplier: float = 2.0
    attempt_timeout_seconds: Optional[float] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")
        if self.attempt_timeout_seconds is not None and self.attempt_timeout_seconds <= 0:
            raise ValueError("attempt_timeout_seconds must be positive")

    @classmethod
    def from_config(cls, config: AdmissionConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay_ms=config.base_delay_ms,
            backoff_multiplier=config.backoff_multiplier,
            attempt_timeout_seconds=config.attempt_timeout_seconds,
        )

    def delay_seconds(self, attempt: int) -> float:
        """Backoff before the attempt following `attempt` (1-based)."""
        return self.base_delay_ms * (self.backoff_multiplier ** (attempt - 1)) / 1000


async def _run_once(operation: Operation, timeout: Optional[float]) -> Outcome:
    try:
        return await asyncio.wait_for(operation(), timeout)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        return Outcome.failure(classify_exception(e))


async def with_retry(
    operation: Operation,
    policy: RetryPolicy,
    operation_name: str = "db_operation",
    sleep: Sleep = asyncio.sleep,
) -> Outcome:
    outcome = None
    for attempt in range(1, policy.max_attempts + 1):
        outcome = await _run_once(operation, policy.attempt_timeout_seconds)

        if not outcome.is_transient_failure:
            if outcome.is_failure:
                record_terminal_failure(operation_name, transient=False)
                logger.error(
                    "db_permanent_failure",
                    operation=operation_name,
                    attempt=attempt,
                    error_type=outcome.cause.error_type,
                    error=outcome.cause.message,
                )
            return outcome.with_attempts(attempt)

        if attempt == policy.max_attempts:
            break

        delay = policy.delay_seconds(attempt)
        record_retry(operation_name)
        logger.info(
            "db_retry",
            operation=operation_name,
            attempt=attempt,
            delay_ms=round(delay * 1000, 2),
            error_type=outcome.cause.error_type,
        )
        await sleep(delay)

    record_terminal_failure(operation_name, transient=True)
    logger.error(
        "db_retries_exhausted",
        operation=operation_name,
        attempts=policy.max_attempts,
        error_type=outcome.cause.error_type,
        error=outcome.cause.message,
    )
    return outcome.with_attempts(policy.max_attempts)
