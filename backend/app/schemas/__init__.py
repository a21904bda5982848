from app.schemas.user import (
    SignUpRequest, SignInRequest, EmailRequest, TokenRequest,
    PasswordResetRequest, UserResponse, Token, MessageResponse,
)
from app.schemas.admission import SignUpModeResponse

__all__ = [
    "SignUpRequest", "SignInRequest", "EmailRequest", "TokenRequest",
    "PasswordResetRequest", "UserResponse", "Token", "MessageResponse",
    "SignUpModeResponse",
]
