"""
Pydantic schemas for admission (sign-up mode, waitlist).
"""

from pydantic import BaseModel

from app.core.config import SignUpMode


class SignUpModeResponse(BaseModel):
    mode: SignUpMode
    sign_up_open: bool
    code_required: bool
    waitlist_open: bool

    @classmethod
    def from_mode(cls, mode: SignUpMode) -> "SignUpModeResponse":
        return cls(
            mode=mode,
            sign_up_open=mode.allows_open_sign_up or mode.requires_code,
            code_required=mode.requires_code,
            waitlist_open=mode.allows_waitlist,
        )
