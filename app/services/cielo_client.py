"""Cielo e-commerce API client.

One method per payment primitive. Every call is bracketed by request and
response entries in the gateway audit log, bounded by a fixed timeout and
never retried here; callers decide whether to try again.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

import httpx

from app.core.config import settings
from app.core.exceptions import GatewayProviderError, GatewayTimeoutError, GatewayUnavailableError
from app.models.gateway_models import GatewayOperation
from app.services.cielo_responses import (
    STATUS_NOT_FINISHED,
    STATUS_PENDING,
    BoletoCharge,
    CardCharge,
    PaymentStatusResult,
    PixCharge,
    ProviderBody,
    VoidResult,
    parse_provider_body,
)
from app.services.gateway_config_service import GatewayCredentials
from app.services.gateway_logger import GatewayAuditLogger

logger = logging.getLogger(__name__)

SALES_PATH = "/1/sales/"

PAYMENT_METHOD_NOT_ENABLED = "payment method is not enabled"
PAYMENT_METHOD_NOT_ENABLED_HINT = (
    "Esta forma de pagamento não está habilitada na sua conta Cielo. "
    "Solicite a habilitação à Cielo ou escolha outra forma de pagamento."
)


def to_cents(amount: Decimal | int | float | str) -> int:
    """Convert a BRL amount to integer cents, rounding half up."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


@dataclass(frozen=True)
class CardData:
    number: str
    holder: str
    expiration_date: str  # "MM/YY" or "MM/YYYY"
    security_code: str
    brand: str

    def cielo_expiration(self) -> str:
        month, _, year = self.expiration_date.partition("/")
        year = year.strip()
        if len(year) == 2:
            year = f"20{year}"
        return f"{month.strip().zfill(2)}/{year}"


@dataclass(frozen=True)
class BoletoCustomer:
    name: str
    cpf: str
    street: str
    city: str
    state: str
    zip_code: str
    number: str = "0"
    complement: str = ""
    district: str = ""


class CieloClient:
    def __init__(
        self,
        credentials: GatewayCredentials,
        audit_logger: GatewayAuditLogger,
        http_client: httpx.Client | None = None,
        timeout: float | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ):
        self.credentials = credentials
        self.audit = audit_logger
        self.timeout = timeout if timeout is not None else settings.CIELO_TIMEOUT_SECONDS
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.timeout)
        self._clock = clock or (lambda: dt.datetime.now(dt.timezone.utc))

    @property
    def base_url(self) -> str:
        if self.credentials.is_production:
            return settings.CIELO_PRODUCTION_URL.rstrip("/")
        return settings.CIELO_SANDBOX_URL.rstrip("/")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> CieloClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Public API -------------------------------------------------------

    def create_pix_payment(self, amount: Decimal, customer_name: str, customer_cpf: str | None = None) -> PixCharge:
        now = self._clock()
        customer: dict[str, Any] = {"Name": customer_name}
        if customer_cpf:
            customer.update({"Identity": _digits(customer_cpf), "IdentityType": "CPF"})
        payload = {
            "MerchantOrderId": self._order_id("PIX", now),
            "Customer": customer,
            "Payment": {
                "Type": "Pix",
                "Amount": to_cents(amount),
                "ExpirationDate": (now + dt.timedelta(minutes=settings.PIX_EXPIRATION_MINUTES)).isoformat(),
            },
        }
        status, body = self._send(GatewayOperation.PIX, "POST", SALES_PATH, payload=payload)
        self._raise_for_status(GatewayOperation.PIX, status, body)
        return PixCharge(
            payment_id=self._require_payment_id(GatewayOperation.PIX, status, body),
            status=body.status,
            qr_code_base64=body.payment_field("QrCodeBase64Image"),
            qr_code_string=body.payment_field("QrCodeString"),
        )

    def create_credit_card_payment(
        self,
        amount: Decimal,
        customer_name: str,
        customer_email: str,
        card: CardData,
        installments: int = 1,
    ) -> CardCharge:
        payload = {
            "MerchantOrderId": self._order_id("ORDER", self._clock()),
            "Customer": {"Name": customer_name, "Email": customer_email},
            "Payment": {
                "Type": "CreditCard",
                "Amount": to_cents(amount),
                "Installments": installments,
                "SoftDescriptor": settings.CARD_SOFT_DESCRIPTOR,
                "Capture": True,
                "CreditCard": {
                    "CardNumber": _digits(card.number),
                    "Holder": card.holder,
                    "ExpirationDate": card.cielo_expiration(),
                    "SecurityCode": card.security_code,
                    "Brand": card.brand,
                },
            },
        }
        status, body = self._send(GatewayOperation.CARTAO, "POST", SALES_PATH, payload=payload)
        self._raise_for_status(GatewayOperation.CARTAO, status, body)
        return CardCharge(
            payment_id=self._require_payment_id(GatewayOperation.CARTAO, status, body),
            status=body.status,
            return_code=body.payment_field("ReturnCode"),
            return_message=body.payment_field("ReturnMessage"),
            authorization_code=body.payment_field("AuthorizationCode"),
        )

    def create_boleto_payment(self, amount: Decimal, customer: BoletoCustomer) -> BoletoCharge:
        now = self._clock()
        cpf = _digits(customer.cpf)
        expiration = (now + dt.timedelta(days=settings.BOLETO_EXPIRATION_DAYS)).date().isoformat()
        payload = {
            "MerchantOrderId": self._order_id("ORDER", now),
            "Customer": {
                "Name": customer.name,
                "Identity": cpf,
                "IdentityType": "CPF",
                "Address": {
                    "Street": customer.street,
                    "Number": customer.number,
                    "Complement": customer.complement,
                    "ZipCode": _digits(customer.zip_code),
                    "District": customer.district,
                    "City": customer.city,
                    "State": customer.state,
                    "Country": "BRA",
                },
            },
            "Payment": {
                "Type": "Boleto",
                "Amount": to_cents(amount),
                "Provider": settings.BOLETO_PROVIDER,
                "Assignor": settings.BOLETO_ASSIGNOR,
                "Demonstrative": "Contribuição",
                "ExpirationDate": expiration,
                "Identification": cpf,
                "Instructions": "Aceitar somente até a data de vencimento",
            },
        }
        status, body = self._send(GatewayOperation.BOLETO, "POST", SALES_PATH, payload=payload)
        self._raise_for_status(GatewayOperation.BOLETO, status, body)
        return BoletoCharge(
            payment_id=self._require_payment_id(GatewayOperation.BOLETO, status, body),
            status=body.status,
            url=body.payment_field("Url"),
            digitable_line=body.payment_field("DigitableLine"),
            barcode_number=body.payment_field("BarCodeNumber"),
            expiration_date=body.payment_field("ExpirationDate") or expiration,
        )

    def cancel_payment(self, payment_id: str, amount: Decimal | None = None) -> VoidResult:
        """Void (same day) or refund a payment, fully or partially."""
        path = f"{SALES_PATH}{payment_id}/void"
        params = {"amount": to_cents(amount)} if amount is not None else None
        status, body = self._send(
            GatewayOperation.CANCELAMENTO, "PUT", path, payment_id=payment_id, params=params
        )
        self._raise_for_status(GatewayOperation.CANCELAMENTO, status, body)
        data = body.data if isinstance(body.data, dict) else {}
        return VoidResult(
            payment_id=payment_id,
            status=body.status,
            return_code=data.get("ReturnCode"),
            return_message=data.get("ReturnMessage"),
        )

    def query_payment(self, payment_id: str) -> PaymentStatusResult:
        path = f"{SALES_PATH}{payment_id}"
        status, body = self._send(GatewayOperation.CONSULTA, "GET", path, payment_id=payment_id)
        if status == 404:
            # Freshly created PIX charges take a while to become queryable
            logger.info("Cielo has no record of payment %s yet; treating as pending", payment_id)
            return PaymentStatusResult(payment_id=payment_id, status_code=STATUS_PENDING, found=False)
        self._raise_for_status(GatewayOperation.CONSULTA, status, body)
        status_code = body.status
        return PaymentStatusResult(
            payment_id=payment_id,
            status_code=status_code if status_code is not None else STATUS_NOT_FINISHED,
            found=True,
            raw=body.data if isinstance(body.data, dict) else {},
        )

    # --- Internals --------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "MerchantId": self.credentials.merchant_id,
            "MerchantKey": self.credentials.merchant_key,
            "RequestId": str(uuid.uuid4()),
        }

    @staticmethod
    def _order_id(prefix: str, now: dt.datetime) -> str:
        return f"{prefix}-{int(now.timestamp() * 1000)}"

    def _send(
        self,
        operation: GatewayOperation,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        payment_id: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, ProviderBody]:
        self.audit.log_request(operation, method, path, payment_id=payment_id, body=payload)
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                json=payload,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            logger.error("[CIELO_TIMEOUT] %s %s exceeded %.0fs", method, path, self.timeout)
            self.audit.log_response(
                operation, method, path, status_code=None, payment_id=payment_id, error_message="timeout"
            )
            raise GatewayTimeoutError(operation.value, self.timeout) from None
        except httpx.HTTPError as exc:
            logger.error("[CIELO_NETWORK] %s %s failed: %s", method, path, exc.__class__.__name__)
            self.audit.log_response(
                operation,
                method,
                path,
                status_code=None,
                payment_id=payment_id,
                error_message=exc.__class__.__name__,
            )
            raise GatewayUnavailableError(operation.value) from None

        body = parse_provider_body(response.text)
        error_message = None if response.is_success else self._error_message(response.status_code, body)
        self.audit.log_response(
            operation,
            method,
            path,
            status_code=response.status_code,
            payment_id=payment_id or body.payment_id,
            body=body.data if body.is_json else body.raw_text,
            error_message=error_message,
        )
        logger.info("Cielo %s %s -> %s", method, path, response.status_code)
        return response.status_code, body

    @staticmethod
    def _error_message(status: int, body: ProviderBody) -> str:
        message = body.error_message()
        if not message:
            return f"HTTP {status}: {body.raw_text or 'Resposta vazia'}"
        if PAYMENT_METHOD_NOT_ENABLED in message.lower():
            return PAYMENT_METHOD_NOT_ENABLED_HINT
        return message

    def _raise_for_status(self, operation: GatewayOperation, status: int, body: ProviderBody) -> None:
        if 200 <= status < 300:
            return
        raise GatewayProviderError(
            message=self._error_message(status, body),
            http_status=status,
            operation=operation.value,
            provider_code=body.error_code(),
        )

    @staticmethod
    def _require_payment_id(operation: GatewayOperation, status: int, body: ProviderBody) -> str:
        payment_id = body.payment_id
        if not payment_id:
            raise GatewayProviderError(
                message="Resposta da Cielo sem PaymentId",
                http_status=status,
                operation=operation.value,
            )
        return payment_id
