import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import DbDep, TransactionServiceDep
from app.api.rate_limit import RATE_LIMITS, limiter
from app.core.exceptions import ContribException, TransactionNotFoundError
from app.models import models
from app.models.schemas import CieloWebhookIn, WebhookAck
from app.services.gateway_logger import GatewayAuditLogger
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)
router = APIRouter()


def _record_webhook(db: Session, provider: str, external_id: str) -> bool:
    existing = (
        db.query(models.WebhookEvent)
        .filter(models.WebhookEvent.provider == provider, models.WebhookEvent.external_id == external_id)
        .one_or_none()
    )
    if existing:
        return True
    db.add(models.WebhookEvent(provider=provider, external_id=external_id))
    return False


def _process_cielo_event(svc: TransactionService, event: CieloWebhookIn) -> WebhookAck:
    payment_id = str(event.payment_id)
    transaction = svc.find_with_backoff(payment_id)
    new_status = svc.resolve_webhook_status(
        event.change_type,
        transaction.gateway_transaction_id or payment_id,
        transaction.company_id,
    )

    status_key = new_status.value if new_status else "none"
    external_id = f"{payment_id}:{event.change_type}:{status_key}"
    if _record_webhook(svc.db, "cielo", external_id):
        logger.info("Cielo webhook duplicate for %s", external_id)
        return WebhookAck(
            status="duplicate",
            transaction_id=transaction.id,
            transaction_status=transaction.status.value,
        )

    if new_status is None:
        svc.db.commit()
        return WebhookAck(status="unchanged", transaction_id=transaction.id, transaction_status=transaction.status.value)

    result = svc.reconcile_webhook(payment_id, new_status, transaction=transaction)
    svc.db.commit()
    return WebhookAck(
        status="processed" if result.changed else "unchanged",
        transaction_id=result.transaction.id,
        transaction_status=result.transaction.status.value,
    )


@router.post("/cielo", response_model=WebhookAck)
@limiter.limit(RATE_LIMITS["webhook_cielo"])
async def cielo_webhook(request: Request, db: DbDep, svc: TransactionServiceDep):
    """Cielo change notification.

    Invalid payloads are acknowledged with 200 so Cielo stops resending them;
    unknown transactions and processing failures answer 500 so it retries.
    """
    raw = await request.body()
    try:
        payload: Any = json.loads(raw or b"null")
    except ValueError:
        payload = None

    payment_hint = payload.get("PaymentId") if isinstance(payload, dict) else None
    await run_in_threadpool(
        GatewayAuditLogger().log_webhook,
        payload if payload is not None else raw.decode("utf-8", errors="replace"),
        str(payment_hint) if payment_hint else None,
    )

    try:
        event = CieloWebhookIn.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Skipping invalid Cielo webhook: %s", exc.errors(include_url=False))
        return WebhookAck(status="skipped", reason="invalid payload")

    try:
        return await run_in_threadpool(_process_cielo_event, svc, event)
    except TransactionNotFoundError:
        db.rollback()
        logger.warning("Cielo webhook for unknown payment %s; asking for retry", event.payment_id)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "reason": "transaction not found", "payment_id": str(event.payment_id)},
        )
    except ContribException as exc:
        db.rollback()
        logger.error("Cielo webhook processing failed for %s: %s (%s)", event.payment_id, exc.message, exc.code)
        return JSONResponse(status_code=500, content={"status": "error", "reason": exc.code})
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("Unexpected error processing Cielo webhook %s", event.payment_id)
        return JSONResponse(status_code=500, content={"status": "error", "reason": "processing error"})
