"""Contribution / transaction schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from app.models.payment_models import PaymentMethod, TransactionStatus

from .utils import format_brl


class CardIn(BaseModel):
    number: str = Field(min_length=12, max_length=23)
    holder: str = Field(min_length=2, max_length=100)
    expiration_date: str = Field(pattern=r"^\d{2}/(\d{2}|\d{4})$")  # MM/YY or MM/YYYY
    security_code: str = Field(pattern=r"^\d{3,4}$")
    brand: str = "Visa"


class BoletoCustomerIn(BaseModel):
    name: str = Field(min_length=2, max_length=150)
    cpf: str = Field(min_length=11, max_length=14)
    street: str
    number: str = "0"
    complement: str = ""
    district: str = ""
    city: str
    state: str = Field(min_length=2, max_length=2)
    zip_code: str


class TransactionCreate(BaseModel):
    contributor_id: str
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    payment_method: Literal["pix", "credit_card", "boleto"]
    installments: int = Field(default=1, ge=1, le=12)
    description: str | None = Field(default=None, max_length=500)
    origin_church_id: str | None = None
    customer_cpf: str | None = None
    card: CardIn | None = None
    boleto_customer: BoletoCustomerIn | None = None

    @model_validator(mode="after")
    def check_method_data(self) -> "TransactionCreate":
        if self.payment_method == "credit_card" and self.card is None:
            raise ValueError("card is required for credit_card payments")
        if self.payment_method == "boleto" and self.boleto_customer is None:
            raise ValueError("boleto_customer is required for boleto payments")
        return self


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    contributor_id: str
    origin_church_id: str | None = None
    amount: Decimal
    status: TransactionStatus
    payment_method: PaymentMethod
    installments: int
    description: str | None = None
    gateway_transaction_id: str | None = None
    refund_request_reason: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class ChargeOut(BaseModel):
    """Method-specific data the contributor needs to finish paying."""
    pix_qr_code_base64: str | None = None
    pix_qr_code: str | None = None
    boleto_url: str | None = None
    boleto_digitable_line: str | None = None
    boleto_barcode: str | None = None
    boleto_expiration_date: str | None = None
    card_return_code: str | None = None
    card_return_message: str | None = None


class TransactionCreateOut(BaseModel):
    transaction: TransactionOut
    charge: ChargeOut


class RefundRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    reason: str = Field(max_length=500)
