"""
Waitlist entry for interest sign-up.

The named unique constraint on `email` is what deduplicates joins; there is
no existence check before the insert.
"""

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, func

from app.db.base import Base

WAITLIST_EMAIL_CONSTRAINT = "uq_waitlist_entries_email"


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("email", name=WAITLIST_EMAIL_CONSTRAINT),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry(id={self.id}, email={self.email})>"
