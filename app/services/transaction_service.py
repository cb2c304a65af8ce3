"""Contribution lifecycle: charge creation, status sync, refunds and webhooks.

Every status change goes through ``apply_status`` so the transition rules in
``app.models.payment_models`` hold no matter whether the update comes from a
user action, a manual sync, the expiry job or a provider webhook.
"""
from __future__ import annotations

import datetime as dt
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ContributorNotFoundError,
    InvalidStatusTransitionError,
    MissingGatewayIdError,
    PaymentMethodNotAcceptedError,
    RefundNotAllowedError,
    TransactionNotFoundError,
)
from app.models.models import User
from app.models.payment_models import PaymentMethod, Transaction, TransactionStatus, can_transition
from app.services.cielo_client import BoletoCustomer, CardData, CieloClient
from app.services.cielo_responses import STATUS_ABORTED, STATUS_DENIED
from app.services.config_cache import ConfigCache
from app.services.gateway_config_service import GatewayConfigResolver, GatewayCredentials
from app.services.gateway_logger import GatewayAuditLogger

logger = logging.getLogger(__name__)

ClientFactory = Callable[[GatewayCredentials], CieloClient]

_APPROVED_CODES = frozenset({1, 2})
_REFUSED_CODES = frozenset({STATUS_DENIED, STATUS_ABORTED})
_REFUNDED_CODES = frozenset({10, 11})

# Webhook ChangeType values
CHANGE_PAYMENT_STATUS = 1
CHANGE_RECURRENCE_CREATED = 2
CHANGE_ANTIFRAUD_STATUS = 3
CHANGE_RECURRING_STATUS = 4
CHANGE_CHARGEBACK = 5
CHANGE_CHARGEBACK_NOTIFICATION = 6


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)


def map_cielo_status(code: int | None) -> TransactionStatus:
    """Map a Cielo ``Payment.Status`` code to the internal status."""
    if code in _APPROVED_CODES:
        return TransactionStatus.APPROVED
    if code in _REFUSED_CODES:
        return TransactionStatus.REFUSED
    if code in _REFUNDED_CODES:
        return TransactionStatus.REFUNDED
    return TransactionStatus.PENDING


def payment_window(method: PaymentMethod) -> dt.timedelta:
    """How long after creation a pending charge of ``method`` can still be paid and confirmed."""
    grace = dt.timedelta(minutes=settings.PENDING_EXPIRY_MINUTES)
    if method == PaymentMethod.PIX:
        return dt.timedelta(minutes=settings.PIX_EXPIRATION_MINUTES) + grace
    if method == PaymentMethod.BOLETO:
        return dt.timedelta(days=settings.BOLETO_EXPIRATION_DAYS + settings.BOLETO_SETTLEMENT_DAYS)
    return grace


def apply_status(transaction: Transaction, new_status: TransactionStatus) -> bool:
    """Move ``transaction`` to ``new_status``. Returns True when the status changed."""
    current = TransactionStatus(transaction.status)
    if current == new_status:
        return False
    if not can_transition(current, new_status):
        raise InvalidStatusTransitionError(current.value, new_status.value)
    transaction.status = new_status
    return True


def default_client_factory(credentials: GatewayCredentials) -> CieloClient:
    return CieloClient(credentials, GatewayAuditLogger(company_id=credentials.company_id))


@dataclass
class InitiationResult:
    transaction: Transaction
    charge: Any


@dataclass
class ReconcileResult:
    transaction: Transaction
    previous_status: TransactionStatus
    changed: bool


class TransactionService:
    def __init__(
        self,
        db: Session,
        cache: ConfigCache,
        client_factory: ClientFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.db = db
        self.cache = cache
        self.client_factory = client_factory or default_client_factory
        self.sleep = sleep
        self.clock = clock

    # --- Queries ----------------------------------------------------------

    def get(self, company_id: str, transaction_id: str) -> Transaction:
        transaction = self.db.scalar(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.company_id == company_id,
                Transaction.deleted_at.is_(None),
            )
        )
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def find_by_payment_id(self, payment_id: str) -> Transaction | None:
        """Look up by gateway id first, then by internal id."""
        transaction = self.db.scalar(
            select(Transaction).where(Transaction.gateway_transaction_id == payment_id)
        )
        if transaction is not None:
            return transaction
        return self.db.get(Transaction, payment_id)

    # --- Charges ----------------------------------------------------------

    def initiate_contribution(
        self,
        company_id: str,
        contributor_id: str,
        amount: Decimal,
        payment_method: PaymentMethod,
        *,
        installments: int = 1,
        description: str | None = None,
        origin_church_id: str | None = None,
        customer_cpf: str | None = None,
        card: CardData | None = None,
        boleto_customer: BoletoCustomer | None = None,
    ) -> InitiationResult:
        contributor = self.db.scalar(
            select(User).where(
                User.id == contributor_id,
                User.company_id == company_id,
                User.deleted_at.is_(None),
            )
        )
        if contributor is None:
            raise ContributorNotFoundError(contributor_id)

        credentials = GatewayConfigResolver(self.db, self.cache).resolve(company_id)
        method = PaymentMethod(payment_method)
        if credentials.accepted_payment_methods and method.value not in credentials.accepted_payment_methods:
            raise PaymentMethodNotAcceptedError(method.value)

        customer_name = contributor.name or contributor.email
        with self.client_factory(credentials) as client:
            if method == PaymentMethod.PIX:
                charge = client.create_pix_payment(amount, customer_name, customer_cpf)
                status = TransactionStatus.PENDING
            elif method == PaymentMethod.CREDIT_CARD:
                if card is None:
                    raise ValueError("card data is required for credit card payments")
                charge = client.create_credit_card_payment(
                    amount, customer_name, contributor.email, card, installments=installments
                )
                status = map_cielo_status(charge.status)
            else:
                if boleto_customer is None:
                    raise ValueError("customer address is required for boleto payments")
                charge = client.create_boleto_payment(amount, boleto_customer)
                status = TransactionStatus.PENDING

        transaction = Transaction(
            company_id=company_id,
            contributor_id=contributor.id,
            origin_church_id=origin_church_id,
            amount=amount,
            payment_method=method,
            installments=installments if method == PaymentMethod.CREDIT_CARD else 1,
            description=description,
            status=status,
            gateway_transaction_id=charge.payment_id,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        logger.info(
            "Created %s contribution %s for company %s (gateway=%s, status=%s)",
            method.value,
            transaction.id,
            company_id,
            charge.payment_id,
            status.value,
        )
        return InitiationResult(transaction=transaction, charge=charge)

    # --- Sync / expiry ----------------------------------------------------

    def _is_expired(self, transaction: Transaction, now: dt.datetime | None = None) -> bool:
        now = now or self.clock()
        age = now - _as_utc(transaction.created_at)
        return age > payment_window(PaymentMethod(transaction.payment_method))

    def sync_transaction(self, company_id: str, transaction_id: str) -> Transaction:
        transaction = self.get(company_id, transaction_id)
        status = TransactionStatus(transaction.status)

        if status == TransactionStatus.REFUNDED:
            logger.info("Transaction %s is refunded; skipping sync", transaction.id)
            return transaction

        if status == TransactionStatus.PENDING and self._is_expired(transaction):
            apply_status(transaction, TransactionStatus.REFUSED)
            self.db.commit()
            logger.info("Transaction %s expired without payment; marked refused", transaction.id)
            return transaction

        if not transaction.gateway_transaction_id:
            raise MissingGatewayIdError(transaction.id)

        credentials = GatewayConfigResolver(self.db, self.cache).resolve(company_id)
        with self.client_factory(credentials) as client:
            result = client.query_payment(transaction.gateway_transaction_id)

        self._apply_gateway_status(transaction, map_cielo_status(result.status_code), source="sync")
        self.db.commit()
        return transaction

    def expire_stale_pending(self) -> int:
        now = self.clock()
        past_deadline = or_(
            *(
                and_(Transaction.payment_method == method, Transaction.created_at < now - payment_window(method))
                for method in PaymentMethod
            )
        )
        stale = self.db.scalars(
            select(Transaction).where(
                Transaction.status == TransactionStatus.PENDING,
                past_deadline,
                Transaction.deleted_at.is_(None),
            )
        ).all()
        for transaction in stale:
            apply_status(transaction, TransactionStatus.REFUSED)
        if stale:
            self.db.commit()
            logger.info("Expired %d stale pending transactions", len(stale))
        return len(stale)

    # --- Refunds ----------------------------------------------------------

    def refund_transaction(
        self,
        company_id: str,
        transaction_id: str,
        reason: str,
        amount: Decimal | None = None,
    ) -> Transaction:
        reason = (reason or "").strip()
        if not reason:
            raise RefundNotAllowedError("Motivo do reembolso é obrigatório")
        transaction = self.get(company_id, transaction_id)
        if TransactionStatus(transaction.status) != TransactionStatus.APPROVED:
            raise RefundNotAllowedError("Apenas transações aprovadas podem ser reembolsadas")

        total = Decimal(transaction.amount)
        refund_amount = Decimal(amount) if amount is not None else total
        if refund_amount <= 0:
            raise RefundNotAllowedError("Valor do reembolso deve ser maior que zero")
        if refund_amount > total:
            raise RefundNotAllowedError("Valor do reembolso excede o valor da transação")

        if transaction.gateway_transaction_id:
            credentials = GatewayConfigResolver(self.db, self.cache).resolve(company_id)
            partial = refund_amount if refund_amount < total else None
            with self.client_factory(credentials) as client:
                client.cancel_payment(transaction.gateway_transaction_id, partial)
        else:
            logger.warning("Refunding %s locally: no gateway id", transaction.id)

        transaction.refund_request_reason = reason
        apply_status(transaction, TransactionStatus.REFUNDED)
        self.db.commit()
        logger.info("Refunded transaction %s (amount=%s)", transaction.id, refund_amount)
        return transaction

    # --- Webhooks ---------------------------------------------------------

    def find_with_backoff(self, payment_id: str) -> Transaction:
        """Wait for a transaction the webhook may have beaten to the database."""
        delay_ms = float(settings.WEBHOOK_INITIAL_DELAY_MS)
        attempts = max(1, settings.WEBHOOK_MAX_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            transaction = self.find_by_payment_id(payment_id)
            if transaction is not None:
                if attempt > 1:
                    logger.info("Found transaction for %s after %d attempts", payment_id, attempt)
                return transaction
            if attempt < attempts:
                logger.debug("Transaction for %s not found (attempt %d/%d)", payment_id, attempt, attempts)
                self.sleep(delay_ms / 1000)
                self.db.expire_all()
                delay_ms = min(delay_ms * settings.WEBHOOK_BACKOFF_MULTIPLIER, settings.WEBHOOK_MAX_DELAY_MS)
        raise TransactionNotFoundError(payment_id)

    def resolve_webhook_status(
        self, change_type: int, payment_id: str, company_id: str
    ) -> TransactionStatus | None:
        """Status a webhook implies, or None when it should not change anything."""
        if change_type == CHANGE_RECURRENCE_CREATED:
            return TransactionStatus.APPROVED
        if change_type in (CHANGE_CHARGEBACK, CHANGE_CHARGEBACK_NOTIFICATION):
            return TransactionStatus.REFUNDED
        if change_type not in (CHANGE_PAYMENT_STATUS, CHANGE_ANTIFRAUD_STATUS, CHANGE_RECURRING_STATUS):
            logger.warning("Ignoring unknown webhook ChangeType %s for %s", change_type, payment_id)
            return None

        credentials = GatewayConfigResolver(self.db, self.cache).resolve(company_id)
        with self.client_factory(credentials) as client:
            result = client.query_payment(payment_id)

        if change_type == CHANGE_RECURRING_STATUS:
            if result.status_code in _REFUSED_CODES:
                return TransactionStatus.REFUSED
            return None
        return map_cielo_status(result.status_code)

    def reconcile_webhook(
        self,
        payment_id: str,
        status: TransactionStatus,
        transaction: Transaction | None = None,
    ) -> ReconcileResult:
        """Apply a webhook status; pass ``transaction`` when it was already looked up."""
        if transaction is None:
            transaction = self.find_with_backoff(payment_id)
        previous = TransactionStatus(transaction.status)
        changed = self._apply_gateway_status(transaction, status, source="webhook")
        if changed:
            self.db.commit()
        return ReconcileResult(transaction=transaction, previous_status=previous, changed=changed)

    @staticmethod
    def _apply_gateway_status(transaction: Transaction, status: TransactionStatus, source: str) -> bool:
        # Provider reports never move a transaction backwards
        try:
            changed = apply_status(transaction, status)
        except InvalidStatusTransitionError:
            logger.warning(
                "Ignoring %s status %s for transaction %s in %s",
                source,
                status.value,
                transaction.id,
                TransactionStatus(transaction.status).value,
            )
            return False
        if changed:
            logger.info("Transaction %s -> %s (%s)", transaction.id, status.value, source)
        return changed
