from __future__ import annotations

import datetime as dt
import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.gateway_models import GatewayConfiguration
    from app.models.payment_models import Transaction
else:
    # Import at runtime for SQLAlchemy relationship resolution
    from app.models import gateway_models  # noqa: F401
    from app.models import payment_models  # noqa: F401


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    """Roles in the ministry hierarchy (manager > supervisor > pastor / church)."""
    ADMIN = "admin"
    MANAGER = "manager"
    SUPERVISOR = "supervisor"
    PASTOR = "pastor"
    CHURCH_ACCOUNT = "church_account"
    MEMBER = "member"


class Company(Base):
    """A tenant. Every other row is scoped by company_id."""
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(150))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    users: Mapped[list["User"]] = relationship(back_populates="company")
    regions: Mapped[list["Region"]] = relationship(back_populates="company")
    gateway_configurations: Mapped[list["GatewayConfiguration"]] = relationship(back_populates="company")


class Region(Base):
    __tablename__ = "regions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)

    company: Mapped[Company] = relationship(back_populates="regions")


class User(Base):
    """Any account in the network: admins, managers, supervisors, pastors and churches.

    Pastors and church accounts point at their supervisor; supervisors carry the
    region. Revenue per region is derived through that chain.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.MEMBER, index=True)
    region_id: Mapped[str | None] = mapped_column(ForeignKey("regions.id"), nullable=True)
    supervisor_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    deleted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    company: Mapped[Company] = relationship(back_populates="users")
    region: Mapped[Region | None] = relationship()
    supervisor: Mapped["User | None"] = relationship(remote_side="User.id")
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="contributor",
        foreign_keys="Transaction.contributor_id",
    )


class WebhookEvent(Base):
    __tablename__ = "webhookevent"
    __table_args__ = (
        UniqueConstraint("provider", "external_id", name="uq_webhookevent_provider_external_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    provider: Mapped[str] = mapped_column(String(40), index=True)
    external_id: Mapped[str] = mapped_column(String(120))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
