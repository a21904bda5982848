from app.models.user import User
from app.models.invitation_code import InvitationCode
from app.models.waitlist import WaitlistEntry

__all__ = ["User", "InvitationCode", "WaitlistEntry"]
