"""Typed, tolerant views over Cielo response bodies.

``parse_provider_body`` never raises: a body that is empty, not JSON or
shaped unexpectedly yields a ``ProviderBody`` whose optional fields are
``None`` and whose ``parse_error`` says why.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Cielo Payment.Status codes
STATUS_NOT_FINISHED = 0
STATUS_AUTHORIZED = 1
STATUS_PAYMENT_CONFIRMED = 2
STATUS_DENIED = 3
STATUS_VOIDED = 10
STATUS_REFUNDED = 11
STATUS_PENDING = 12
STATUS_ABORTED = 13
STATUS_SCHEDULED = 20


@dataclass(frozen=True)
class ProviderBody:
    raw_text: str
    data: Any = None
    payment: dict[str, Any] = field(default_factory=dict)
    parse_error: str | None = None

    @property
    def is_json(self) -> bool:
        return self.parse_error is None and self.data is not None

    @property
    def payment_id(self) -> str | None:
        value = self.payment.get("PaymentId")
        if value is None and isinstance(self.data, dict):
            value = self.data.get("PaymentId")
        return str(value) if value is not None else None

    @property
    def status(self) -> int | None:
        value = self.payment.get("Status")
        if value is None and isinstance(self.data, dict):
            value = self.data.get("Status")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def payment_field(self, name: str) -> Any:
        return self.payment.get(name)

    def error_message(self) -> str | None:
        """Provider message from ``{"Message": ...}`` or ``[{"Code": .., "Message": ..}]``."""
        if isinstance(self.data, dict):
            message = self.data.get("Message") or self.data.get("ReturnMessage")
            return str(message) if message else None
        if isinstance(self.data, list) and self.data and isinstance(self.data[0], dict):
            message = self.data[0].get("Message")
            return str(message) if message else None
        return None

    def error_code(self) -> str | None:
        if isinstance(self.data, dict) and self.data.get("Code") is not None:
            return str(self.data["Code"])
        if isinstance(self.data, list) and self.data and isinstance(self.data[0], dict):
            code = self.data[0].get("Code")
            return str(code) if code is not None else None
        return None


def parse_provider_body(text: str | None) -> ProviderBody:
    raw = text or ""
    if not raw.strip():
        return ProviderBody(raw_text=raw, parse_error="empty body")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning("Cielo response is not valid JSON (%s); continuing with raw text", exc)
        return ProviderBody(raw_text=raw, parse_error=str(exc))

    payment = data.get("Payment") if isinstance(data, dict) else None
    return ProviderBody(raw_text=raw, data=data, payment=payment if isinstance(payment, dict) else {})


@dataclass(frozen=True)
class PixCharge:
    payment_id: str
    status: int | None
    qr_code_base64: str | None
    qr_code_string: str | None


@dataclass(frozen=True)
class CardCharge:
    payment_id: str
    status: int | None
    return_code: str | None
    return_message: str | None
    authorization_code: str | None = None


@dataclass(frozen=True)
class BoletoCharge:
    payment_id: str
    status: int | None
    url: str | None
    digitable_line: str | None
    barcode_number: str | None
    expiration_date: str | None


@dataclass(frozen=True)
class VoidResult:
    payment_id: str
    status: int | None
    return_code: str | None
    return_message: str | None


@dataclass(frozen=True)
class PaymentStatusResult:
    payment_id: str
    status_code: int
    found: bool = True
    raw: dict[str, Any] = field(default_factory=dict)
