"""Add message_mappings table

Revision ID: 001_message_mappings
Revises:
Create Date: 2026-10-12
"""
from alembic import op
import sqlalchemy as sa

revision = "001_message_mappings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "message_mappings",
        sa.Column("telegram_message_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("chatwoot_message_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("telegram_message_id"),
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_table("message_mappings")
