"""Add thread_mappings table for forum topics

Revision ID: 002_thread_mappings
Revises: 001_message_mappings
Create Date: 2026-10-12
"""
from alembic import op
import sqlalchemy as sa

revision = "002_thread_mappings"
down_revision = "001_message_mappings"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "thread_mappings",
        sa.Column("conversation_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("thread_id", sa.BigInteger(), nullable=False),
        sa.Column("thread_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("conversation_id"),
        if_not_exists=True,
    )
    # Обратный поиск: топик -> диалог (ответы staff внутри топика)
    op.create_index(
        "ix_thread_mappings_thread_id",
        "thread_mappings",
        ["thread_id"],
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("ix_thread_mappings_thread_id", table_name="thread_mappings")
    op.drop_table("thread_mappings")
