"""add gateway configuration and gateway log tables

Revision ID: 0002_add_gateway_tables
Revises: 0001_initial
Create Date: 2026-09-03
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_add_gateway_tables"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

gateway_environment = sa.Enum("PRODUCTION", "DEVELOPMENT", name="gatewayenvironment")


def upgrade() -> None:  # noqa: D401
    op.create_table(
        "gateway_configurations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id"), nullable=False, index=True),
        sa.Column("gateway_name", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("environment", gateway_environment, nullable=False),
        sa.Column("prod_client_id", sa.Text(), nullable=True),
        sa.Column("prod_client_secret", sa.Text(), nullable=True),
        sa.Column("dev_client_id", sa.Text(), nullable=True),
        sa.Column("dev_client_secret", sa.Text(), nullable=True),
        sa.Column("certificate", sa.Text(), nullable=True),
        sa.Column("certificate_password", sa.Text(), nullable=True),
        sa.Column("accepted_payment_methods", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_unique_constraint(
        "uq_gateway_configurations_company_gateway",
        "gateway_configurations",
        ["company_id", "gateway_name"],
    )
    op.create_table(
        "gateway_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.String(length=36), nullable=True, index=True),
        sa.Column("gateway_name", sa.String(length=50), nullable=False),
        sa.Column("operation_type", sa.String(length=50), nullable=False, index=True),
        sa.Column("direction", sa.String(length=20), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("payment_id", sa.String(length=255), nullable=True, index=True),
        sa.Column("request_body", sa.Text(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:  # noqa: D401
    op.drop_table("gateway_logs")
    op.drop_constraint("uq_gateway_configurations_company_gateway", "gateway_configurations", type_="unique")
    op.drop_table("gateway_configurations")
    gateway_environment.drop(op.get_bind(), checkfirst=True)
