"""initial tenants, regions, users and webhook events

Revision ID: 0001_initial
Revises:
Create Date: 2026-09-01
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum(
    "ADMIN", "MANAGER", "SUPERVISOR", "PASTOR", "CHURCH_ACCOUNT", "MEMBER", name="userrole"
)


def upgrade() -> None:  # noqa: D401
    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "regions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=True),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id"), nullable=False, index=True),
        sa.Column("email", sa.String(length=255), nullable=False, index=True),
        sa.Column("name", sa.String(length=150), nullable=True),
        sa.Column("role", user_role, nullable=False, index=True),
        sa.Column("region_id", sa.String(length=36), sa.ForeignKey("regions.id"), nullable=True),
        sa.Column("supervisor_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "webhookevent",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("provider", sa.String(length=40), nullable=False, index=True),
        sa.Column("external_id", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_unique_constraint(
        "uq_webhookevent_provider_external_id",
        "webhookevent",
        ["provider", "external_id"],
    )


def downgrade() -> None:  # noqa: D401
    op.drop_constraint("uq_webhookevent_provider_external_id", "webhookevent", type_="unique")
    op.drop_table("webhookevent")
    op.drop_table("users")
    op.drop_table("regions")
    op.drop_table("companies")
    user_role.drop(op.get_bind(), checkfirst=True)
