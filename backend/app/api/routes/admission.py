"""
Admission endpoints: sign-up mode, sign-up (open or code-gated), waitlist.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import AdmissionConfig, get_admission_config
from app.db.session import get_db
from app.schemas.admission import SignUpModeResponse
from app.schemas.user import EmailRequest, MessageResponse, SignUpRequest, UserResponse
from app.services.admission_ledger import AdmissionLedger, get_ledger
from app.services.interfaces.attempt_limiter import AttemptLimiter
from app.services.interfaces.email_sender import EmailSender
from app.services.signup_service import join_waitlist, sign_up
from app.services.strategy_factory import get_attempt_limiter, get_email_sender

router = APIRouter(prefix="/auth", tags=["Admission"])


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.get("/sign-up-mode", response_model=SignUpModeResponse)
async def sign_up_mode(config: AdmissionConfig = Depends(get_admission_config)):
    """Which sign-up paths are currently open."""
    return SignUpModeResponse.from_mode(config.mode)


@router.post("/sign-up", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def sign_up_endpoint(
    data: SignUpRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    ledger: AdmissionLedger = Depends(get_ledger),
    sender: EmailSender = Depends(get_email_sender),
    limiter: AttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Create an account.

    In gated modes the sign-up code is claimed atomically before the account
    is created; concurrent requests with the same code get exactly one winner.
    A verification email is sent on success.
    """
    return await sign_up(db, ledger, sender, limiter, data, client_key(request))


@router.post("/interest-sign-up", response_model=MessageResponse)
async def interest_sign_up(
    data: EmailRequest,
    request: Request,
    ledger: AdmissionLedger = Depends(get_ledger),
    limiter: AttemptLimiter = Depends(get_attempt_limiter),
):
    """Join the waitlist. Answers the same way whether or not the email was already on it."""
    message = await join_waitlist(ledger, limiter, data.email, client_key(request))
    return MessageResponse(message=message)
