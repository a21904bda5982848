"""
Admission control ledger: single-use invitation codes and the waitlist.

CONCURRENCY STRATEGY: Atomic conditional writes, no pre-checks
===============================================================

Problem:
  Two requests present the same code simultaneously.
  Both SELECT it, both see claimed_by IS NULL, both UPDATE.
  Result: one code, two accounts.

Solution:
  Each state transition is one statement that checks and mutates together.

  Claim:
    UPDATE invitation_codes SET claimed_by = :claimant, claimed_at = now()
    WHERE code = :code AND claimed_by IS NULL
    rowcount 1 -> claimed, rowcount 0 -> unknown or already claimed

  Waitlist:
    INSERT INTO waitlist_entries (email) VALUES (:email)
    unique violation on uq_waitlist_entries_email -> already on waitlist

  The database is the only synchronization point, so this holds across any
  number of workers and hosts. No application locks are taken.

  A claim is committed before the caller creates the account. If account
  creation then fails the code stays consumed: a code can be wasted, but
  it can never be used twice.

Each attempt runs in its own session, and every operation goes through
with_retry so contention and dropped connections are retried.
"""

import time
from typing import Optional

from fastapi import Depends
from sqlalchemy import func, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import AdmissionConfig, get_admission_config
from app.core.logging import get_logger
from app.core.metrics import admission_latency, record_admission
from app.db.session import get_session_factory
from app.models.invitation_code import InvitationCode
from app.models.waitlist import WaitlistEntry, WAITLIST_EMAIL_CONSTRAINT
from app.services.errors import classify_exception, is_unique_violation
from app.services.outcomes import Outcome
from app.services.retry import RetryPolicy, with_retry

logger = get_logger(__name__)


class AdmissionLedger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: AdmissionConfig,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.session_factory = session_factory
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy.from_config(config)

    async def claim_code(self, code: str, claimant: str) -> Outcome:
        """
        Claim `code` for `claimant`.

        Returns:
            CLAIMED if this call transitioned the code
            ALREADY_CLAIMED_OR_INVALID if the code is unknown or taken
            a failure outcome if storage kept failing
        """
        start = time.perf_counter()
        outcome = await with_retry(
            lambda: self._claim_once(code, claimant),
            self.retry_policy,
            operation_name="claim_code",
        )
        admission_latency.labels(operation="claim_code").observe(time.perf_counter() - start)
        record_admission("claim_code", outcome.kind.value)

        if outcome.is_failure:
            logger.warning(
                "code_claim_failed",
                claimant=claimant,
                outcome=outcome.kind.value,
                attempts=outcome.attempts,
                error=outcome.cause.message,
            )
        else:
            logger.info(
                "code_claim_result",
                claimant=claimant,
                outcome=outcome.kind.value,
                attempts=outcome.attempts,
            )
        return outcome

    async def join_waitlist(self, email: str) -> Outcome:
        """
        Add `email` to the waitlist.

        Returns:
            JOINED_WAITLIST on insert
            ALREADY_ON_WAITLIST if the email is already present
            a failure outcome for anything else
        """
        start = time.perf_counter()
        outcome = await with_retry(
            lambda: self._join_once(email),
            self.retry_policy,
            operation_name="join_waitlist",
        )
        admission_latency.labels(operation="join_waitlist").observe(time.perf_counter() - start)
        record_admission("join_waitlist", outcome.kind.value)

        if outcome.is_failure:
            logger.warning(
                "waitlist_join_failed",
                email=email,
                outcome=outcome.kind.value,
                attempts=outcome.attempts,
                error=outcome.cause.message,
            )
        else:
            logger.info(
                "waitlist_join_result",
                email=email,
                outcome=outcome.kind.value,
                attempts=outcome.attempts,
            )
        return outcome

    async def _claim_once(self, code: str, claimant: str) -> Outcome:
        if not code or not claimant:
            return Outcome.permanent("code and claimant are required", "InvalidInput")

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(InvitationCode)
                    .where(
                        InvitationCode.code == code,
                        InvitationCode.claimed_by.is_(None),
                    )
                    .values(claimed_by=claimant, claimed_at=func.now())
                )
                transitioned = result.rowcount == 1
                await session.commit()
        except SQLAlchemyError as e:
            return Outcome.failure(classify_exception(e))

        if transitioned:
            return Outcome.claimed()
        return Outcome.already_claimed_or_invalid()

    async def _join_once(self, email: str) -> Outcome:
        if not email:
            return Outcome.permanent("email is required", "InvalidInput")

        try:
            async with self.session_factory() as session:
                await session.execute(insert(WaitlistEntry).values(email=email))
                await session.commit()
        except IntegrityError as e:
            if is_unique_violation(e, WAITLIST_EMAIL_CONSTRAINT, "waitlist_entries.email"):
                return Outcome.already_on_waitlist()
            return Outcome.failure(classify_exception(e))
        except SQLAlchemyError as e:
            return Outcome.failure(classify_exception(e))

        return Outcome.joined_waitlist()


def get_ledger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: AdmissionConfig = Depends(get_admission_config),
) -> AdmissionLedger:
    return AdmissionLedger(session_factory, config)
