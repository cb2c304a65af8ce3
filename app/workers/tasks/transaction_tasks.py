"""Background jobs for contribution transactions."""
from __future__ import annotations

import logging

from celery import Task

from app.core.exceptions import GatewayCommunicationError
from app.db.session import session_scope
from app.services.config_cache import get_config_cache
from app.services.transaction_service import TransactionService
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="transactions.expire_stale_pending")
def expire_stale_pending() -> int:
    """Refuse pending charges whose payment deadline has passed."""
    with session_scope() as db:
        expired = TransactionService(db, get_config_cache()).expire_stale_pending()
    logger.info("expire_stale_pending finished | expired=%d", expired)
    return expired


@celery_app.task(
    bind=True,
    name="transactions.sync_status",
    autoretry_for=(GatewayCommunicationError,),
    retry_backoff=10,
    retry_jitter=True,
    retry_kwargs={"max_retries": 4},
)
def sync_transaction_status(self: Task, company_id: str, transaction_id: str) -> str:
    """Sync one transaction with Cielo, retrying on timeouts and provider errors."""
    logger.info("Syncing transaction | company=%s transaction=%s", company_id, transaction_id)
    with session_scope() as db:
        transaction = TransactionService(db, get_config_cache()).sync_transaction(company_id, transaction_id)
        return transaction.status.value
