"""Initial schema: users, invitation_codes, waitlist_entries.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    # Unique index doubles as the account-uniqueness guard; the sign-up
    # service recognises violations of it by name.
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Invitation codes: provisioned out of band, claimed exactly once.
    # claimed_by IS NULL is the "unclaimed" state the claim UPDATE tests;
    # the primary key makes that UPDATE a single-row lookup.
    op.create_table(
        "invitation_codes",
        sa.Column("code", sa.String(64), primary_key=True),
        sa.Column("claimed_by", sa.String(255), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_invitation_codes_claimed_by", "invitation_codes", ["claimed_by"])

    # Waitlist: the named unique constraint is what deduplicates joins.
    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("email", name="uq_waitlist_entries_email"),
    )
    op.create_index("ix_waitlist_entries_id", "waitlist_entries", ["id"])


def downgrade() -> None:
    op.drop_table("waitlist_entries")
    op.drop_table("invitation_codes")
    op.drop_table("users")
