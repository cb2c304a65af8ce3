import datetime as dt

import httpx

from app.models.payment_models import TransactionStatus

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}
PAYMENT_ID = "8d1b6c3e-6f0a-4f2e-9a57-3c2b1d0e9f11"


def _pix(contributor, amount="50.00"):
    return {"contributor_id": contributor.id, "amount": amount, "payment_method": "pix"}


def test_create_pix_contribution(client, gateway_config, contributor, fake_cielo):
    fake_cielo.reply(
        201,
        {"Payment": {"PaymentId": PAYMENT_ID, "Status": 12, "QrCodeBase64Image": "aW1n", "QrCodeString": "000201"}},
    )

    response = client.post("/transactions", json=_pix(contributor))

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["transaction"]["status"] == "pending"
    assert data["transaction"]["amount"] == "50.00"
    assert data["transaction"]["gateway_transaction_id"] == PAYMENT_ID
    assert data["charge"]["pix_qr_code"] == "000201"
    assert data["charge"]["boleto_url"] is None


def test_create_card_contribution(client, gateway_config, contributor, fake_cielo):
    fake_cielo.reply(201, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 2, "ReturnCode": "6", "ReturnMessage": "OK"}})

    response = client.post(
        "/transactions",
        json={
            "contributor_id": contributor.id,
            "amount": "120.00",
            "payment_method": "credit_card",
            "installments": 3,
            "card": {
                "number": "4111 1111 1111 1111",
                "holder": "MARIA SILVA",
                "expiration_date": "12/30",
                "security_code": "123",
                "brand": "Visa",
            },
        },
    )

    assert response.status_code == 201, response.text
    assert response.json()["transaction"]["status"] == "approved"
    assert response.json()["charge"]["card_return_code"] == "6"


def test_card_data_is_required_for_card_payments(client, gateway_config, contributor, fake_cielo):
    response = client.post(
        "/transactions",
        json={"contributor_id": contributor.id, "amount": "10.00", "payment_method": "credit_card"},
    )

    assert response.status_code == 422
    assert fake_cielo.requests == []


def test_amount_must_be_positive(client, gateway_config, contributor):
    response = client.post("/transactions", json=_pix(contributor, amount="0"))

    assert response.status_code == 422


def test_unconfigured_gateway_returns_setup_guidance(client, contributor, fake_cielo):
    response = client.post("/transactions", json=_pix(contributor))

    assert response.status_code == 503
    error = response.json()["error"]
    assert error["code"] == "GTW100"
    assert "/admin/gateways/cielo" in error["message"]
    assert fake_cielo.requests == []


def test_timeout_maps_to_504(client, gateway_config, contributor, fake_cielo):
    fake_cielo.fail(httpx.ReadTimeout)

    response = client.post("/transactions", json=_pix(contributor))

    assert response.status_code == 504
    assert response.json()["error"]["message"] == "Timeout ao comunicar com a API da Cielo. Tente novamente."


def test_provider_error_maps_to_502(client, gateway_config, contributor, fake_cielo):
    fake_cielo.reply(400, [{"Code": 126, "Message": "Invalid amount"}])

    response = client.post("/transactions", json=_pix(contributor))

    assert response.status_code == 502
    assert response.json()["error"]["message"] == "Invalid amount"


def test_get_unknown_transaction(client, company):
    response = client.get("/transactions/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TRX300"


def test_transactions_are_tenant_scoped(client, transaction_factory):
    transaction = transaction_factory()

    assert client.get(f"/transactions/{transaction.id}").status_code == 200
    assert client.get(f"/transactions/{transaction.id}", headers={"X-Company-Id": "other"}).status_code == 404


def test_sync_endpoint(client, gateway_config, transaction_factory, fake_cielo):
    transaction = transaction_factory()
    fake_cielo.reply(200, {"Payment": {"PaymentId": PAYMENT_ID, "Status": 3}})

    response = client.post(f"/transactions/{transaction.id}/sync", headers=ADMIN_HEADERS)

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "refused"


def test_sync_endpoint_expires_stale_pending(client, transaction_factory, fake_cielo):
    transaction = transaction_factory(created_at=dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=1))

    response = client.post(f"/transactions/{transaction.id}/sync", headers=ADMIN_HEADERS)

    assert response.json()["status"] == "refused"
    assert fake_cielo.requests == []


def test_refund_requires_admin(client, transaction_factory):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)

    assert client.post(f"/transactions/{transaction.id}/refund", json={"reason": "Duplicidade"}).status_code == 401


def test_refund_endpoint(client, gateway_config, transaction_factory, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    fake_cielo.reply(200, {"Status": 10})

    response = client.post(
        f"/transactions/{transaction.id}/refund",
        headers=ADMIN_HEADERS,
        json={"reason": "Valor digitado errado"},
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "refunded"
    assert response.json()["refund_request_reason"] == "Valor digitado errado"


def test_refund_of_pending_is_rejected(client, transaction_factory, fake_cielo):
    transaction = transaction_factory()

    response = client.post(
        f"/transactions/{transaction.id}/refund", headers=ADMIN_HEADERS, json={"reason": "Duplicidade"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "TRX303"


def test_sync_requires_admin(client, transaction_factory, fake_cielo):
    transaction = transaction_factory()

    assert client.post(f"/transactions/{transaction.id}/sync").status_code == 401
    assert client.post(f"/transactions/{transaction.id}/sync", headers={"X-Admin-Key": "wrong"}).status_code == 401
    assert fake_cielo.requests == []


def test_refund_without_reason_is_rejected(client, transaction_factory, fake_cielo):
    transaction = transaction_factory(status=TransactionStatus.APPROVED)
    url = f"/transactions/{transaction.id}/refund"

    missing = client.post(url, headers=ADMIN_HEADERS, json={})
    blank = client.post(url, headers=ADMIN_HEADERS, json={"reason": "   "})

    assert missing.status_code == 422
    assert blank.status_code == 400
    assert blank.json()["error"]["message"] == "Motivo do reembolso é obrigatório"
    assert fake_cielo.requests == []
    assert client.get(f"/transactions/{transaction.id}").json()["status"] == "approved"
