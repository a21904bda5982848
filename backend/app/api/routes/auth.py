"""
Account endpoints: sign-in, email verification, password reset, deletion.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.security import get_current_user_id
from app.schemas.user import (
    EmailRequest,
    MessageResponse,
    PasswordResetRequest,
    SignInRequest,
    Token,
    TokenRequest,
    UserResponse,
)
from app.services.auth_service import (
    authenticate_user,
    delete_account,
    get_user,
    request_password_reset,
    resend_verification,
    reset_password,
    verify_email,
)
from app.services.interfaces.email_sender import EmailSender
from app.services.strategy_factory import get_email_sender

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESEND_MESSAGE = "If that account needs verification, a new link is on its way."
RESET_REQUEST_MESSAGE = "If that email has an account, a password reset link is on its way."


@router.post("/sign-in", response_model=Token)
async def sign_in(login_data: SignInRequest, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email_endpoint(data: TokenRequest, db: AsyncSession = Depends(get_db)):
    await verify_email(db, data.token)
    return MessageResponse(message="Email verified. You can now sign in.")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification_endpoint(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    await resend_verification(db, sender, data.email)
    return MessageResponse(message=RESEND_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    await request_password_reset(db, sender, data.email)
    return MessageResponse(message=RESET_REQUEST_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password_endpoint(data: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    await reset_password(db, data.token, data.password)
    return MessageResponse(message="Password updated. You can now sign in.")


@router.get("/me", response_model=UserResponse)
async def me(user_id: int = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    """The signed-in account."""
    return await get_user(db, user_id)


@router.delete("/account", response_model=MessageResponse)
async def delete_account_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await delete_account(db, user_id)
    return MessageResponse(message="Account deleted")
