"""Contribution transaction model and its status rules."""
from __future__ import annotations

import datetime as dt
import enum
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from sqlalchemy.sql import func

from app.core.exceptions import GatewayIdImmutableError
from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.models import User


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TransactionStatus(str, enum.Enum):
    """Contribution status."""
    PENDING = "pending"       # Charge created, awaiting confirmation
    APPROVED = "approved"     # Paid / authorized at the gateway
    REFUSED = "refused"       # Denied, aborted or expired
    REFUNDED = "refunded"     # Voided or refunded


# approved may still be refunded; refused and refunded are terminal
ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.APPROVED, TransactionStatus.REFUSED, TransactionStatus.REFUNDED}
    ),
    TransactionStatus.APPROVED: frozenset({TransactionStatus.REFUNDED}),
    TransactionStatus.REFUSED: frozenset(),
    TransactionStatus.REFUNDED: frozenset(),
}


def can_transition(current: TransactionStatus, new: TransactionStatus) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS[current]


class PaymentMethod(str, enum.Enum):
    PIX = "pix"
    CREDIT_CARD = "credit_card"
    BOLETO = "boleto"


class Transaction(Base):
    """
    A single contribution attempt (tithe or offering).

    Flow:
    1. Contributor initiates payment -> status=PENDING (cards may be APPROVED/REFUSED at once)
    2. Webhook or manual sync reports the gateway status -> status updated through the state machine
    3. Admin refund -> status=REFUNDED

    Rows are never hard-deleted; ``deleted_at`` marks a soft delete.
    """
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    contributor_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    origin_church_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    """Amount in reais (BRL); sent to the gateway as integer cents"""

    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus),
        default=TransactionStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    installments: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    """Cielo PaymentId. Write-once."""

    refund_request_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_fraud: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fraud_marked_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    fraud_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
    deleted_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    contributor: Mapped["User"] = relationship(back_populates="transactions", foreign_keys=[contributor_id])
    origin_church: Mapped[Optional["User"]] = relationship(foreign_keys=[origin_church_id])

    @validates("gateway_transaction_id")
    def _validate_gateway_id(self, key: str, value: str | None) -> str | None:
        current = self.gateway_transaction_id
        if current and value != current:
            raise GatewayIdImmutableError(current, value)
        return value

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, status={self.status}, amount=R${self.amount})>"
