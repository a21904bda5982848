"""
Sign-up orchestration across admission modes.

Flow for a code-gated sign-up:
  1. Mode allows sign-up with a code, and a code was supplied
  2. Attempt limiter admits the client
  3. Email is not already registered (so a code is not burned on a 409)
  4. Ledger claims the code atomically and commits
  5. Account is created and the verification email goes out

A failure in step 5 does not return the code to the pool.

Messages for rejected codes and waitlist joins are deliberately generic so
responses never reveal whether a code exists or an email is on the waitlist.
"""

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SignUpMode
from app.core.logging import get_logger
from app.core.metrics import record_sign_up
from app.models.user import User
from app.schemas.user import SignUpRequest
from app.services.admission_ledger import AdmissionLedger
from app.services.auth_service import create_account, find_user_id_by_email, send_verification
from app.services.interfaces.attempt_limiter import AttemptLimiter
from app.services.interfaces.email_sender import EmailSender
from app.services.outcomes import Outcome, OutcomeKind

logger = get_logger(__name__)

CODE_REJECTED = "Invalid or already used sign-up code"
CODE_REQUIRED = "A sign-up code is required"
SIGN_UP_CLOSED = "Sign up is not currently available"
WAITLIST_CLOSED = "The waitlist is not currently open"
TOO_MANY_ATTEMPTS = "Too many attempts. Please try again later."
TRY_AGAIN_LATER = "Service temporarily unavailable. Please try again later."
EMAIL_REGISTERED = "Email already registered"
WAITLIST_THANKS = "Thanks for your interest! We'll let you know when sign-up opens."


def _unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=TRY_AGAIN_LATER)


def _raise_for_failure(outcome: Outcome, mode: SignUpMode, stage: str) -> None:
    if outcome.is_failure:
        record_sign_up(mode.value, "error")
        logger.error(
            "admission_failed",
            stage=stage,
            outcome=outcome.kind.value,
            attempts=outcome.attempts,
            error_type=outcome.cause.error_type,
            error=outcome.cause.message,
        )
        raise _unavailable()


async def _check_limit(limiter: AttemptLimiter, scope: str, client_key: str, mode: SignUpMode) -> None:
    if not await limiter.allow(scope, client_key):
        record_sign_up(mode.value, "rejected")
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=TOO_MANY_ATTEMPTS)


async def sign_up(
    db: AsyncSession,
    ledger: AdmissionLedger,
    sender: EmailSender,
    limiter: AttemptLimiter,
    data: SignUpRequest,
    client_key: str,
) -> User:
    """
    Create an account if the configured mode admits this request.
    Raises 403/400/409/429/503 with user-safe messages.
    """
    mode = ledger.config.mode

    if not (mode.allows_open_sign_up or mode.requires_code):
        record_sign_up(mode.value, "rejected")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=SIGN_UP_CLOSED)

    if mode.requires_code and not data.code:
        record_sign_up(mode.value, "rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CODE_REQUIRED)

    await _check_limit(limiter, "sign_up", client_key, mode)

    if mode.requires_code:
        existing = await find_user_id_by_email(db, data.email, ledger.retry_policy)
        _raise_for_failure(existing, mode, "find_user")
        if existing.value is not None:
            record_sign_up(mode.value, "conflict")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_REGISTERED)

        claim = await ledger.claim_code(data.code, data.email)
        _raise_for_failure(claim, mode, "claim_code")
        if claim.kind is not OutcomeKind.CLAIMED:
            record_sign_up(mode.value, "rejected")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CODE_REJECTED)

    created = await create_account(db, data.name, data.email, data.password, ledger.retry_policy)
    if created.kind is OutcomeKind.ALREADY_REGISTERED:
        if mode.requires_code:
            logger.warning("account_creation_failed_after_claim", email=data.email, reason="email_exists")
        record_sign_up(mode.value, "conflict")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_REGISTERED)
    if created.is_failure and mode.requires_code:
        logger.error("account_creation_failed_after_claim", email=data.email, error=created.cause.message)
    _raise_for_failure(created, mode, "create_account")

    user = created.value
    try:
        await send_verification(sender, user)
    except Exception as e:
        # The account exists; the user can ask for another link
        logger.error("verification_email_failed", user_id=user.id, error=str(e))

    record_sign_up(mode.value, "created")
    return user


async def join_waitlist(
    ledger: AdmissionLedger,
    limiter: AttemptLimiter,
    email: str,
    client_key: str,
) -> str:
    """Add `email` to the waitlist; returns the user-facing message."""
    mode = ledger.config.mode

    if not mode.allows_waitlist:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=WAITLIST_CLOSED)

    if not await limiter.allow("waitlist", client_key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=TOO_MANY_ATTEMPTS)

    outcome = await ledger.join_waitlist(email)
    if outcome.is_failure:
        logger.error(
            "admission_failed",
            stage="join_waitlist",
            outcome=outcome.kind.value,
            attempts=outcome.attempts,
            error=outcome.cause.message,
        )
        raise _unavailable()

    return WAITLIST_THANKS
