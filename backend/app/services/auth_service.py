"""
Account service: creation, sign-in, email verification, password reset
and deletion.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from app.models.user import User
from app.schemas.user import SignInRequest
from app.core.security import (
    DUMMY_PASSWORD_HASH,
    RESET_PASSWORD_PURPOSE,
    VERIFY_EMAIL_PURPOSE,
    create_access_token,
    create_email_verification_token,
    create_password_reset_token,
    decode_token,
    hash_password,
    password_fingerprint,
    verify_password,
)
from app.core.logging import get_logger
from app.services.email_service import send_password_reset_email, send_verification_email
from app.services.errors import classify_exception, is_unique_violation
from app.services.interfaces.email_sender import EmailSender
from app.services.outcomes import Outcome
from app.services.retry import RetryPolicy, with_retry

logger = get_logger(__name__)

USER_EMAIL_CONSTRAINT = "ix_users_email"


async def create_account(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    policy: RetryPolicy,
) -> Outcome:
    """
    Insert a new user.

    Returns OK with the user, ALREADY_REGISTERED if the email is taken,
    or a failure outcome. The commit is the last step of the retried
    operation, and every attribute the caller reads is set before it, so
    nothing after a successful commit can fail and trigger a re-insert.
    """
    hashed = hash_password(password)

    async def insert_user() -> Outcome:
        now = datetime.now(timezone.utc)
        user = User(
            email=email,
            name=name,
            hashed_password=hashed,
            email_verified=False,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if is_unique_violation(e, USER_EMAIL_CONSTRAINT, "users.email"):
                return Outcome.already_registered()
            return Outcome.failure(classify_exception(e))
        except SQLAlchemyError as e:
            await db.rollback()
            return Outcome.failure(classify_exception(e))
        return Outcome.ok(user)

    outcome = await with_retry(insert_user, policy, operation_name="create_account")
    if outcome.value is not None:
        logger.info("user_registered", user_id=outcome.value.id, email=email)
    return outcome


async def find_user_id_by_email(db: AsyncSession, email: str, policy: RetryPolicy) -> Outcome:
    """OK with the user id, or OK with None when no account uses `email`."""

    async def lookup() -> Outcome:
        try:
            result = await db.execute(select(User.id).where(User.email == email))
        except SQLAlchemyError as e:
            await db.rollback()
            return Outcome.failure(classify_exception(e))
        return Outcome.ok(result.scalar_one_or_none())

    return await with_retry(lookup, policy, operation_name="find_user")


async def _get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )
    return user


async def authenticate_user(db: AsyncSession, login_data: SignInRequest) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid, 403 if the account cannot sign in yet.
    """
    user = await _get_by_email(db, login_data.email)

    if user is None:
        # Same bcrypt cost whether or not the email exists
        verify_password(login_data.password, DUMMY_PASSWORD_HASH)
    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("sign_in_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    if not user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email before signing in",
        )

    token = create_access_token(data={"sub": str(user.id)})
    logger.info("user_signed_in", user_id=user.id)
    return token


async def send_verification(sender: EmailSender, user: User) -> None:
    token = create_email_verification_token(user.id, user.email)
    await send_verification_email(sender, user.email, token)


def _invalid_link(kind: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid or expired {kind} link",
    )


def _subject_id(payload: dict) -> Optional[int]:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


async def verify_email(db: AsyncSession, token: str) -> User:
    payload = decode_token(token, VERIFY_EMAIL_PURPOSE)
    user_id = _subject_id(payload) if payload else None
    if user_id is None:
        raise _invalid_link("verification")

    user = await db.get(User, user_id)
    # An address change would leave old links pointing at the wrong email
    if not user or user.email != payload.get("email"):
        raise _invalid_link("verification")

    if not user.email_verified:
        user.email_verified = True
        await db.commit()
        logger.info("email_verified", user_id=user.id)
    return user


async def resend_verification(db: AsyncSession, sender: EmailSender, email: str) -> None:
    """Send a fresh link if `email` belongs to an unverified account; silent otherwise."""
    user = await _get_by_email(db, email)
    if user is None or user.email_verified or not user.is_active:
        return
    await send_verification(sender, user)
    logger.info("verification_resent", user_id=user.id)


async def request_password_reset(db: AsyncSession, sender: EmailSender, email: str) -> None:
    """Mail a reset link if `email` belongs to an active account; silent otherwise."""
    user = await _get_by_email(db, email)
    if user is None or not user.is_active:
        return
    token = create_password_reset_token(user.id, user.hashed_password)
    await send_password_reset_email(sender, user.email, token)
    logger.info("password_reset_requested", user_id=user.id)


async def reset_password(db: AsyncSession, token: str, new_password: str) -> User:
    """
    Set a new password from a reset token.
    The token embeds a fingerprint of the old hash, so it stops working once used.
    """
    payload = decode_token(token, RESET_PASSWORD_PURPOSE)
    user_id = _subject_id(payload) if payload else None
    if user_id is None:
        raise _invalid_link("password reset")

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise _invalid_link("password reset")
    if payload.get("pwd") != password_fingerprint(user.hashed_password):
        raise _invalid_link("password reset")

    user.hashed_password = hash_password(new_password)
    await db.commit()
    logger.info("password_reset", user_id=user.id)
    return user


async def delete_account(db: AsyncSession, user_id: int) -> None:
    """
    Delete the account. Invitation codes it claimed stay claimed.
    """
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("account_deleted", user_id=user_id)
