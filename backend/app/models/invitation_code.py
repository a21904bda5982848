"""
Single-use invitation code for gated sign-up.

Key design decisions:
- `code` is the primary key, so lookups and the claim UPDATE hit one row
- `claimed_by` NULL means unclaimed; it is set exactly once by the atomic
  claim statement and never cleared, so claimed rows double as an audit trail
- Codes are provisioned out of band (SQL or admin tooling), never via the API
"""

from sqlalchemy import Column, String, DateTime, Index, func

from app.db.base import Base


class InvitationCode(Base):
    __tablename__ = "invitation_codes"

    code = Column(String(64), primary_key=True)
    claimed_by = Column(String(255), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        # Audit queries: "which code did this email use?"
        Index("ix_invitation_codes_claimed_by", "claimed_by"),
    )

    @property
    def is_claimed(self) -> bool:
        return self.claimed_by is not None

    def __repr__(self) -> str:
        return f"<InvitationCode(code={self.code}, claimed_by={self.claimed_by})>"
