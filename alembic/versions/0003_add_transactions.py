"""add contribution transactions

Revision ID: 0003_add_transactions
Revises: 0002_add_gateway_tables
Create Date: 2026-09-10
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0003_add_transactions"
down_revision = "0002_add_gateway_tables"
branch_labels = None
depends_on = None

transaction_status = sa.Enum("PENDING", "APPROVED", "REFUSED", "REFUNDED", name="transactionstatus")
payment_method = sa.Enum("PIX", "CREDIT_CARD", "BOLETO", name="paymentmethod")


def upgrade() -> None:  # noqa: D401
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id"), nullable=False, index=True),
        sa.Column("contributor_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("origin_church_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", transaction_status, nullable=False, index=True),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("installments", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("gateway_transaction_id", sa.String(length=255), nullable=True, index=True),
        sa.Column("refund_request_reason", sa.Text(), nullable=True),
        sa.Column("is_fraud", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("fraud_marked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fraud_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deletion_reason", sa.Text(), nullable=True),
    )


def downgrade() -> None:  # noqa: D401
    op.drop_table("transactions")
    payment_method.drop(op.get_bind(), checkfirst=True)
    transaction_status.drop(op.get_bind(), checkfirst=True)
