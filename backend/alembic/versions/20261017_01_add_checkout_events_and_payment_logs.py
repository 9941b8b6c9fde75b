"""Add checkout_events and payment_logs tables.

Revision ID: 20261017_01
Revises:
Create Date: 2026-10-17 12:00:00
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "checkout_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=255), nullable=True),
        sa.Column("user_email", sa.String(length=255), nullable=True),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("checkout_session_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_checkout_events_id", "checkout_events", ["id"])
    op.create_index("ix_checkout_events_session_id", "checkout_events", ["session_id"])
    op.create_index("ix_checkout_events_event_type", "checkout_events", ["event_type"])
    op.create_index("ix_checkout_events_created_at", "checkout_events", ["created_at"])

    op.create_table(
        "payment_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("telefone", sa.String(length=50), nullable=True),
        sa.Column("cpf", sa.String(length=20), nullable=True),
        sa.Column("payment_method", sa.String(length=64), nullable=False),
        sa.Column("aceitou", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("pagou_pix", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_payment_logs_id", "payment_logs", ["id"])
    op.create_index("ix_payment_logs_email", "payment_logs", ["email"])
    op.create_index("ix_payment_logs_created_at", "payment_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_payment_logs_created_at", table_name="payment_logs")
    op.drop_index("ix_payment_logs_email", table_name="payment_logs")
    op.drop_index("ix_payment_logs_id", table_name="payment_logs")
    op.drop_table("payment_logs")

    op.drop_index("ix_checkout_events_created_at", table_name="checkout_events")
    op.drop_index("ix_checkout_events_event_type", table_name="checkout_events")
    op.drop_index("ix_checkout_events_session_id", table_name="checkout_events")
    op.drop_index("ix_checkout_events_id", table_name="checkout_events")
    op.drop_table("checkout_events")
