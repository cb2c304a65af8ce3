"""Exception hierarchy for the contributions backend.

All application errors derive from ``ContribException`` so the API layer can
translate them in one place (see ``app.core.errors``).

Error codes follow pattern: [CATEGORY][NUMBER]
- GTW1xx: Gateway configuration errors (raised before any HTTP call)
- GTW2xx: Gateway communication errors
- TRX3xx: Transaction errors
- SYS4xx: System errors
"""

from __future__ import annotations

from typing import Any

GATEWAY_SETTINGS_PATH = "/admin/gateways/cielo"


class ContribException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


# ============================================================================
# GATEWAY CONFIGURATION ERRORS (GTW100-199)
# ============================================================================

class GatewayConfigurationError(ContribException):
    """Base class for gateway setup problems."""
    pass


class GatewayNotConfiguredError(GatewayConfigurationError):
    """No configuration row exists for the tenant."""

    def __init__(self, gateway: str, company_id: str):
        super().__init__(
            message=f"Gateway {gateway} não configurado. Configure em {GATEWAY_SETTINGS_PATH}",
            code="GTW100",
            status_code=503,
            details={"gateway": gateway, "company_id": company_id},
        )


class GatewayDisabledError(GatewayConfigurationError):
    """Configuration exists but the gateway is switched off."""

    def __init__(self, gateway: str, company_id: str):
        super().__init__(
            message=f"Gateway {gateway} está desativado. Ative em {GATEWAY_SETTINGS_PATH}",
            code="GTW101",
            status_code=503,
            details={"gateway": gateway, "company_id": company_id},
        )


class GatewayCredentialsMissingError(GatewayConfigurationError):
    """Credential pair for the selected environment is incomplete."""

    def __init__(self, gateway: str, environment: str):
        super().__init__(
            message=(
                f"Credenciais {gateway} {environment} não configuradas. "
                f"Configure em {GATEWAY_SETTINGS_PATH}"
            ),
            code="GTW102",
            status_code=503,
            details={"gateway": gateway, "environment": environment},
        )


# ============================================================================
# GATEWAY COMMUNICATION ERRORS (GTW200-299)
# ============================================================================

class GatewayCommunicationError(ContribException):
    """Base class for failures talking to the payment provider."""
    pass


class GatewayTimeoutError(GatewayCommunicationError):
    """The provider did not answer within the configured timeout."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            message="Timeout ao comunicar com a API da Cielo. Tente novamente.",
            code="GTW200",
            status_code=504,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


class GatewayProviderError(GatewayCommunicationError):
    """Provider answered with a non-2xx status."""

    def __init__(self, message: str, http_status: int, operation: str, provider_code: str | None = None):
        super().__init__(
            message=message,
            code="GTW201",
            status_code=502,
            details={
                "operation": operation,
                "http_status": http_status,
                "provider_code": provider_code,
            },
        )
        self.http_status = http_status


class GatewayUnavailableError(GatewayCommunicationError):
    """Network failure other than a timeout."""

    def __init__(self, operation: str):
        super().__init__(
            message="Não foi possível conectar à API da Cielo. Tente novamente mais tarde.",
            code="GTW202",
            status_code=503,
            details={"operation": operation},
        )


# ============================================================================
# TRANSACTION ERRORS (TRX300-399)
# ============================================================================

class TransactionError(ContribException):
    """Base class for transaction errors."""
    pass


class TransactionNotFoundError(TransactionError):
    def __init__(self, transaction_id: str | None = None):
        message = "Transação não encontrada" if not transaction_id else f"Transação {transaction_id} não encontrada"
        super().__init__(
            message=message,
            code="TRX300",
            status_code=404,
            details={"transaction_id": transaction_id} if transaction_id else {},
        )


class InvalidStatusTransitionError(TransactionError):
    """Status change not allowed by the transaction state machine."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            message=f"Não é possível alterar o status da transação de '{current_status}' para '{new_status}'",
            code="TRX301",
            status_code=409,
            details={"current_status": current_status, "new_status": new_status},
        )


class GatewayIdImmutableError(TransactionError):
    """gateway_transaction_id can only be written once."""

    def __init__(self, current: str, attempted: str | None):
        super().__init__(
            message="O ID da transação no gateway não pode ser alterado",
            code="TRX302",
            status_code=409,
            details={"current": current, "attempted": attempted},
        )


class RefundNotAllowedError(TransactionError):
    def __init__(self, reason: str):
        super().__init__(message=reason, code="TRX303", status_code=400)


class MissingGatewayIdError(TransactionError):
    def __init__(self, transaction_id: str):
        super().__init__(
            message="Transação sem ID do gateway",
            code="TRX304",
            status_code=400,
            details={"transaction_id": transaction_id},
        )


class ContributorNotFoundError(TransactionError):
    def __init__(self, contributor_id: str):
        super().__init__(
            message="Contribuinte não encontrado",
            code="TRX305",
            status_code=404,
            details={"contributor_id": contributor_id},
        )


class PaymentMethodNotAcceptedError(TransactionError):
    """Tenant has not enabled this payment method for its gateway."""

    def __init__(self, payment_method: str):
        super().__init__(
            message=f"Forma de pagamento '{payment_method}' não aceita por esta igreja",
            code="TRX306",
            status_code=400,
            details={"payment_method": payment_method},
        )


# ============================================================================
# SYSTEM ERRORS (SYS400-499)
# ============================================================================

class ConfigurationError(ContribException):
    """Application configuration is invalid or missing."""

    def __init__(self, parameter: str):
        super().__init__(
            message=f"Configuration error: {parameter} is not configured properly",
            code="SYS401",
            status_code=500,
            details={"parameter": parameter},
        )
