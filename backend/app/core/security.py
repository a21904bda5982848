"""
Password hashing and signed tokens.

Passwords are hashed with bcrypt directly. Tokens are HS256 JWTs carrying a
`purpose` claim so an email-verification or password-reset token can never
be replayed as an access token, and vice versa.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings

ACCESS_PURPOSE = "access"
VERIFY_EMAIL_PURPOSE = "verify_email"
RESET_PASSWORD_PURPOSE = "reset_password"

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Used when the email is unknown so sign-in takes the same time either way
DUMMY_PASSWORD_HASH = hash_password("gated_signup_timing_dummy")


def password_fingerprint(hashed_password: str) -> str:
    """Short digest of the stored hash; changes whenever the password does."""
    return hashlib.sha256(hashed_password.encode("utf-8")).hexdigest()[:16]


def _encode(claims: dict, expires_delta: timedelta) -> str:
    settings = get_settings()
    payload = claims.copy()
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({**data, "purpose": ACCESS_PURPOSE}, delta)


def create_email_verification_token(user_id: int, email: str) -> str:
    settings = get_settings()
    return _encode(
        {"sub": str(user_id), "email": email, "purpose": VERIFY_EMAIL_PURPOSE},
        timedelta(minutes=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES),
    )


def create_password_reset_token(user_id: int, hashed_password: str) -> str:
    settings = get_settings()
    return _encode(
        {
            "sub": str(user_id),
            "pwd": password_fingerprint(hashed_password),
            "purpose": RESET_PASSWORD_PURPOSE,
        },
        timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )


def decode_token(token: str, purpose: str) -> Optional[dict]:
    """
    Decode and verify a token of the given purpose.
    Returns None on any failure; callers turn that into 400/401.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != purpose or "sub" not in payload:
        return None
    return payload


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    payload = decode_token(credentials.credentials, ACCESS_PURPOSE)
    if payload is None:
        raise unauthorized
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise unauthorized
