"""Payment gateway settings and the append-only gateway audit trail."""
from __future__ import annotations

import datetime as dt
import enum
import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.models import Company


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class GatewayEnvironment(str, enum.Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"


class GatewayOperation(str, enum.Enum):
    """Operation tags stored on GatewayLog rows."""
    PIX = "pix"
    CARTAO = "cartao"
    BOLETO = "boleto"
    CONSULTA = "consulta"
    CANCELAMENTO = "cancelamento"
    WEBHOOK = "webhook"


class LogDirection(str, enum.Enum):
    REQUEST = "request"
    RESPONSE = "response"


class GatewayConfiguration(Base):
    """Per-tenant gateway credentials, one row per (company, gateway)."""
    __tablename__ = "gateway_configurations"
    __table_args__ = (
        UniqueConstraint("company_id", "gateway_name", name="uq_gateway_configurations_company_gateway"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    gateway_name: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    environment: Mapped[GatewayEnvironment] = mapped_column(
        Enum(GatewayEnvironment),
        default=GatewayEnvironment.DEVELOPMENT,
        nullable=False,
    )
    prod_client_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prod_client_secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dev_client_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dev_client_secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    certificate: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    certificate_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    accepted_payment_methods: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Comma separated PaymentMethod values (e.g. 'pix,credit_card')"""

    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    company: Mapped["Company"] = relationship(back_populates="gateway_configurations")

    def credentials_for(self, environment: GatewayEnvironment) -> tuple[str | None, str | None]:
        if environment == GatewayEnvironment.PRODUCTION:
            return self.prod_client_id, self.prod_client_secret
        return self.dev_client_id, self.dev_client_secret


class GatewayLog(Base):
    """One request or response exchanged with the provider. Never updated."""
    __tablename__ = "gateway_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    gateway_name: Mapped[str] = mapped_column(String(50), default="Cielo", nullable=False)
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    request_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
