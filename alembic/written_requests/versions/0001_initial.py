"""initial written_requests schema

Revision ID: 0001_written_requests
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_written_requests"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "written_requests",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("guest_email", sa.String(), nullable=True),
        sa.Column("question_1", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("question_2", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("question_3", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("calculator_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("stripe_session_id", sa.String(), nullable=True),
        sa.Column("payment_intent_id", sa.String(), nullable=True),
        sa.Column("amount_paid_pence", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('draft', 'awaiting_payment', 'paid')",
            name="ck_written_requests_status",
        ),
    )
    op.create_index("ix_written_requests_status", "written_requests", ["status"])
    op.create_index("ix_written_requests_user_id", "written_requests", ["user_id"])
    op.create_index(
        "ix_written_requests_stripe_session_id", "written_requests", ["stripe_session_id"], unique=True
    )
    op.create_index("ix_written_requests_payment_intent_id", "written_requests", ["payment_intent_id"])


def downgrade() -> None:
    op.drop_index("ix_written_requests_payment_intent_id", table_name="written_requests")
    op.drop_index("ix_written_requests_stripe_session_id", table_name="written_requests")
    op.drop_index("ix_written_requests_user_id", table_name="written_requests")
    op.drop_index("ix_written_requests_status", table_name="written_requests")
    op.drop_table("written_requests")
