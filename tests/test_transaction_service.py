import datetime as dt
from decimal import Decimal

import pytest

from app.core.exceptions import (
    ContributorNotFoundError,
    GatewayDisabledError,
    GatewayIdImmutableError,
    GatewayNotConfiguredError,
    GatewayProviderError,
    InvalidStatusTransitionError,
    MissingGatewayIdError,
    PaymentMethodNotAcceptedError,
    RefundNotAllowedError,
    TransactionNotFoundError,
)
from app.models.gateway_models import GatewayEnvironment
from app.models.payment_models import PaymentMethod, Transaction, TransactionStatus, can_transition
from app.services.cielo_client import CardData
from app.services.transaction_service import TransactionService, apply_status, map_cielo_status, payment_window

PAYMENT_ID = "8d1b6c3e-6f0a-4f2e-9a57-3c2b1d0e9f11"

CARD = CardData(number="4111111111111111", holder="MARIA SILVA", expiration_date="12/30", security_code="123", brand="Visa")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(db_session, cache, fake_cielo, sleeps):
    return TransactionService(db_session, cache, client_factory=fake_cielo.client_factory, sleep=sleeps.append)


def _ago(minutes: int) -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=minutes)


@pytest.mark.parametrize(
    "code, expected",
    [
        (1, TransactionStatus.APPROVED),
        (2, TransactionStatus.APPROVED),
        (3, TransactionStatus.REFUSED),
        (13, TransactionStatus.REFUSED),
        (10, TransactionStatus.REFUNDED),
        (11, TransactionStatus.REFUNDED),
        (0, TransactionStatus.PENDING),
        (12, TransactionStatus.PENDING),
        (20, TransactionStatus.PENDING),
        (None, TransactionStatus.PENDING),
    ],
)
def test_map_cielo_status(code, expected):
    assert map_cielo_status(code) == expected


def test_state_machine_rules():
    assert can_transition(TransactionStatus.PENDING, TransactionStatus.APPROVED)
    assert can_transition(TransactionStatus.APPROVED, TransactionStatus.REFUNDED)
    assert can_transition(TransactionStatus.REFUSED, TransactionStatus.REFUSED)
    assert not can_transition(TransactionStatus.APPROVED, TransactionStatus.PENDING)
    assert not can_transition(TransactionStatus.REFUNDED, TransactionStatus.APPROVED)
    assert not can_transition(TransactionStatus.REFUSED, TransactionStatus.APPROVED)


def test_apply_status(transaction_factory):
    transaction = transaction_factory()

    assert apply_status(transaction, TransactionStatus.APPROVED) is True
    assert apply_status(transaction, TransactionStatus.APPROVED) is False
    with pytest.raises(InvalidStatusTransitionError):
        apply_status(transaction, TransactionStatus.PENDING)


def test_gateway_id_is_write_once(transaction_factory):
    transaction = transaction_factory()

    transaction.gateway_transaction_id = PAYMENT_ID
    with pytest.raises(GatewayIdImmutableError):
        transaction.gateway_transaction_id = "another-id"


# --- initiate_contribution -------------------------------------------------


def test_pix_contribution_is_stored_pending(service, gateway_config, contributor, company, fake_cielo, db_session):
    fake_cielo.reply(201, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 12, "QrCodeString": "000201"}})

    result = service.initiate_contribution(company.id, contributor.id, Decimal("50.00"), PaymentMethod.PIX)

    stored = db_session.get(Transaction, result.transaction.id)
    assert stored.status == TransactionStatus.PENDING
    assert stored.gateway_transaction_id == PAYMENT_ID
    assert stored.amount == Decimal("50.00")
    assert result.charge.qr_code_string == "000201"
    assert fake_cielo.json(0)["Customer"]["Name"] == "Maria Silva"


@pytest.mark.parametrize("cielo_status, expected", [(2, TransactionStatus.APPROVED), (3, TransactionStatus.REFUSED)])
def test_card_contribution_takes_gateway_status(
    service, gateway_config, contributor, company, fake_cielo, cielo_status, expected
):
    fake_cielo.reply(201, {"Payment": {"PaymentId": PAYMENT_ID, "Status": cielo_status}})

    result = service.initiate_contribution(
        company.id, contributor.id, Decimal("100.00"), PaymentMethod.CREDIT_CARD, card=CARD, installments=2
    )

    assert result.transaction.status == expected
    assert result.transaction.installments == 2


def test_inactive_gateway_fails_before_any_http_call(service, gateway_config_factory, contributor, company, fake_cielo):
    gateway_config_factory(is_active=False)

    with pytest.raises(GatewayDisabledError):
        service.initiate_contribution(company.id, contributor.id, Decimal("10.00"), PaymentMethod.PIX)

    assert fake_cielo.requests == []


def test_unconfigured_gateway_fails_before_any_http_call(service, contributor, company, fake_cielo, db_session):
    with pytest.raises(GatewayNotConfiguredError):
        service.initiate_contribution(company.id, contributor.id, Decimal("10.00"), PaymentMethod.PIX)

    assert fake_cielo.requests == []
    assert db_session.query(Transaction).count() == 0


def test_development_environment_never_sends_production_credentials(
    service, gateway_config_factory, contributor, company, fake_cielo
):
    gateway_config_factory(environment=GatewayEnvironment.DEVELOPMENT)
    fake_cielo.reply(201, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 12}})

    service.initiate_contribution(company.id, contributor.id, Decimal("10.00"), PaymentMethod.PIX)

    request = fake_cielo.requests[0]
    assert request.headers["MerchantId"] == "dev-merchant-id"
    assert request.headers["MerchantKey"] == "dev-merchant-key"
    assert request.url.host == "apisandbox.cieloecommerce.cielo.com.br"


def test_payment_method_must_be_accepted(service, gateway_config_factory, contributor, company, fake_cielo):
    gateway_config_factory(accepted_payment_methods="pix")

    with pytest.raises(PaymentMethodNotAcceptedError):
        service.initiate_contribution(
            company.id, contributor.id, Decimal("10.00"), PaymentMethod.CREDIT_CARD, card=CARD
        )

    assert fake_cielo.requests == []


def test_unknown_contributor(service, gateway_config, company):
    with pytest.raises(ContributorNotFoundError):
        service.initiate_contribution(company.id, "missing", Decimal("10.00"), PaymentMethod.PIX)


# --- sync_transaction --------------------------------------------------------


def test_sync_applies_gateway_status(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory()
    fake_cielo.reply(200, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 2}})

    synced = service.sync_transaction(company.id, transaction.id)

    assert synced.status == TransactionStatus.APPROVED
    assert fake_cielo.requests[0].url.path == f"/1/sales/{PAYMENT_ID}"


def test_sync_keeps_pending_when_cielo_has_no_record(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory()
    fake_cielo.reply(404, None)

    assert service.sync_transaction(company.id, transaction.id).status == TransactionStatus.PENDING


def test_sync_expires_old_pending_without_calling_gateway(service, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(created_at=_ago(60))

    synced = service.sync_transaction(company.id, transaction.id)

    assert synced.status == TransactionStatus.REFUSED
    assert fake_cielo.requests == []


def test_sync_skips_refunded(service, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.REFUNDED)

    assert service.sync_transaction(company.id, transaction.id).status == TransactionStatus.REFUNDED
    assert fake_cielo.requests == []


def test_sync_never_moves_backwards(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    fake_cielo.reply(200, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 12}})

    assert service.sync_transaction(company.id, transaction.id).status == TransactionStatus.APPROVED


def test_sync_requires_gateway_id(service, transaction_factory, company):
    transaction = transaction_factory(gateway_transaction_id=None)

    with pytest.raises(MissingGatewayIdError):
        service.sync_transaction(company.id, transaction.id)


def test_sync_is_tenant_scoped(service, transaction_factory):
    transaction = transaction_factory()

    with pytest.raises(TransactionNotFoundError):
        service.sync_transaction("other-company", transaction.id)


def test_expire_stale_pending(service, transaction_factory, db_session):
    old = transaction_factory(created_at=_ago(60), gateway_transaction_id="a")
    fresh = transaction_factory(created_at=_ago(2), gateway_transaction_id="b")
    approved = transaction_factory(created_at=_ago(30), status=TransactionStatus.APPROVED, gateway_transaction_id="c")

    assert service.expire_stale_pending() == 1

    db_session.expire_all()
    assert db_session.get(Transaction, old.id).status == TransactionStatus.REFUSED
    assert db_session.get(Transaction, fresh.id).status == TransactionStatus.PENDING
    assert db_session.get(Transaction, approved.id).status == TransactionStatus.APPROVED


# --- refund_transaction ------------------------------------------------------


def test_full_refund_voids_at_gateway(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    fake_cielo.reply(200, {"Status": 10, "ReturnCode": "9"})

    refunded = service.refund_transaction(company.id, transaction.id, reason="Duplicidade")

    assert refunded.status == TransactionStatus.REFUNDED
    assert refunded.refund_request_reason == "Duplicidade"
    request = fake_cielo.requests[0]
    assert request.method == "PUT"
    assert request.url.path == f"/1/sales/{PAYMENT_ID}/void"
    assert "amount" not in request.url.params


def test_partial_refund_sends_amount_in_cents(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    fake_cielo.reply(200, {"Status": 11})

    service.refund_transaction(company.id, transaction.id, "Duplicidade", amount=Decimal("40.00"))

    assert fake_cielo.requests[0].url.params["amount"] == "4000"


def test_refund_requires_approved(service, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.PENDING)

    with pytest.raises(RefundNotAllowedError):
        service.refund_transaction(company.id, transaction.id, "Duplicidade")

    assert fake_cielo.requests == []


def test_refund_cannot_exceed_amount(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)

    with pytest.raises(RefundNotAllowedError) as exc:
        service.refund_transaction(company.id, transaction.id, "Duplicidade", amount=Decimal("100.01"))

    assert "excede" in exc.value.message
    assert fake_cielo.requests == []


def test_refund_without_gateway_id_is_local(service, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED, gateway_transaction_id=None)

    assert service.refund_transaction(company.id, transaction.id, "Duplicidade").status == TransactionStatus.REFUNDED
    assert fake_cielo.requests == []


def test_gateway_failure_leaves_transaction_approved(service, gateway_config, transaction_factory, company, fake_cielo, db_session):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    fake_cielo.reply(400, [{"Code": 308, "Message": "Transaction not available to void"}])

    with pytest.raises(GatewayProviderError):
        service.refund_transaction(company.id, transaction.id, "Duplicidade")

    db_session.expire_all()
    assert db_session.get(Transaction, transaction.id).status == TransactionStatus.APPROVED


# --- webhooks ----------------------------------------------------------------


def test_reconcile_finds_by_gateway_id(service, transaction_factory):
    transaction = transaction_factory()

    result = service.reconcile_webhook(PAYMENT_ID, TransactionStatus.APPROVED)

    assert result.transaction.id == transaction.id
    assert result.changed is True
    assert result.previous_status == TransactionStatus.PENDING


def test_reconcile_falls_back_to_internal_id(service, transaction_factory):
    transaction = transaction_factory(gateway_transaction_id=None)

    result = service.reconcile_webhook(transaction.id, TransactionStatus.REFUSED)

    assert result.transaction.status == TransactionStatus.REFUSED


def test_reconcile_retries_with_backoff_then_gives_up(service, sleeps):
    with pytest.raises(TransactionNotFoundError):
        service.reconcile_webhook(PAYMENT_ID, TransactionStatus.APPROVED)

    # two attempts configured for tests, one pause between them
    assert len(sleeps) == 1


def test_reconcile_ignores_backwards_move(service, transaction_factory):
    transaction_factory(status=TransactionStatus.REFUNDED)

    result = service.reconcile_webhook(PAYMENT_ID, TransactionStatus.APPROVED)

    assert result.changed is False
    assert result.transaction.status == TransactionStatus.REFUNDED


@pytest.mark.parametrize(
    "change_type, expected",
    [(2, TransactionStatus.APPROVED), (5, TransactionStatus.REFUNDED), (6, TransactionStatus.REFUNDED)],
)
def test_webhook_status_without_query(service, company, fake_cielo, change_type, expected):
    assert service.resolve_webhook_status(change_type, PAYMENT_ID, company.id) == expected
    assert fake_cielo.requests == []


@pytest.mark.parametrize(
    "change_type, cielo_status, expected",
    [
        (1, 2, TransactionStatus.APPROVED),
        (1, 3, TransactionStatus.REFUSED),
        (3, 10, TransactionStatus.REFUNDED),
        (4, 13, TransactionStatus.REFUSED),
        (4, 2, None),
    ],
)
def test_webhook_status_with_query(service, gateway_config, company, fake_cielo, change_type, cielo_status, expected):
    fake_cielo.reply(200, {"Payment": {"PaymentId": PAYMENT_ID, "Status": cielo_status}})

    assert service.resolve_webhook_status(change_type, PAYMENT_ID, company.id) == expected
    assert len(fake_cielo.requests) == 1


def test_reconcile_uses_transaction_already_found(service, transaction_factory, sleeps, monkeypatch):
    transaction = transaction_factory()
    monkeypatch.setattr(service, "find_with_backoff", lambda payment_id: pytest.fail("looked up twice"))

    result = service.reconcile_webhook(PAYMENT_ID, TransactionStatus.APPROVED, transaction=transaction)

    assert result.changed is True
    assert result.transaction.status == TransactionStatus.APPROVED
    assert sleeps == []


# --- payment deadlines -------------------------------------------------------


@pytest.mark.parametrize(
    "method, window",
    [
        (PaymentMethod.PIX, dt.timedelta(minutes=45)),
        (PaymentMethod.BOLETO, dt.timedelta(days=10)),
        (PaymentMethod.CREDIT_CARD, dt.timedelta(minutes=15)),
    ],
)
def test_payment_window_per_method(method, window):
    assert payment_window(method) == window


def test_expiry_respects_each_method_deadline(service, transaction_factory, db_session):
    pix_paying = transaction_factory(created_at=_ago(20), gateway_transaction_id="pix-20")
    pix_late = transaction_factory(created_at=_ago(50), gateway_transaction_id="pix-50")
    boleto_open = transaction_factory(
        payment_method=PaymentMethod.BOLETO, created_at=_ago(3 * 24 * 60), gateway_transaction_id="boleto-3d"
    )
    boleto_late = transaction_factory(
        payment_method=PaymentMethod.BOLETO, created_at=_ago(11 * 24 * 60), gateway_transaction_id="boleto-11d"
    )
    card_stuck = transaction_factory(
        payment_method=PaymentMethod.CREDIT_CARD, created_at=_ago(20), gateway_transaction_id="card-20"
    )

    assert service.expire_stale_pending() == 3

    db_session.expire_all()
    rows = (pix_paying, pix_late, boleto_open, boleto_late, card_stuck)
    statuses = {t.gateway_transaction_id: db_session.get(Transaction, t.id).status for t in rows}
    assert statuses == {
        "pix-20": TransactionStatus.PENDING,
        "pix-50": TransactionStatus.REFUSED,
        "boleto-3d": TransactionStatus.PENDING,
        "boleto-11d": TransactionStatus.REFUSED,
        "card-20": TransactionStatus.REFUSED,
    }


def test_sync_of_open_boleto_asks_gateway(service, gateway_config, transaction_factory, company, fake_cielo):
    transaction = transaction_factory(payment_method=PaymentMethod.BOLETO, created_at=_ago(2 * 24 * 60))
    fake_cielo.reply(200, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 2}})

    assert service.sync_transaction(company.id, transaction.id).status == TransactionStatus.APPROVED
    assert len(fake_cielo.requests) == 1


# --- refund reason -----------------------------------------------------------


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_refund_requires_reason(service, transaction_factory, company, fake_cielo, reason):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)

    with pytest.raises(RefundNotAllowedError) as exc:
        service.refund_transaction(company.id, transaction.id, reason)

    assert exc.value.message == "Motivo do reembolso é obrigatório"
    assert fake_cielo.requests == []
