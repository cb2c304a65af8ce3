"""Audit trail of every exchange with the payment provider.

Bodies are redacted with ``sanitize_payload`` before they are stored.
Writes go through a dedicated session so a failed audit insert can never
roll back, or be rolled back with, the caller's unit of work. Failures are
reported through ``LogWriteResult`` and the error logger, never raised.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.core.sanitizer import sanitize_payload
from app.db.session import SessionLocal
from app.models.gateway_models import GatewayLog, GatewayOperation, LogDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogWriteResult:
    ok: bool
    log_id: int | None = None
    error: str | None = None


def _serialize(body: Any) -> str | None:
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return sanitize_payload(body)
    return json.dumps(sanitize_payload(body), ensure_ascii=False, default=str)


class GatewayAuditLogger:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        gateway_name: str = "Cielo",
        company_id: str | None = None,
    ):
        self.session_factory = session_factory
        self.gateway_name = gateway_name
        self.company_id = company_id

    def log_request(
        self,
        operation: GatewayOperation,
        method: str,
        endpoint: str,
        payment_id: str | None = None,
        body: Any = None,
    ) -> LogWriteResult:
        return self._write(
            operation_type=operation.value,
            direction=LogDirection.REQUEST.value,
            method=method,
            endpoint=endpoint,
            payment_id=payment_id,
            request_body=_serialize(body),
        )

    def log_response(
        self,
        operation: GatewayOperation,
        method: str,
        endpoint: str,
        status_code: int | None,
        payment_id: str | None = None,
        body: Any = None,
        error_message: str | None = None,
    ) -> LogWriteResult:
        return self._write(
            operation_type=operation.value,
            direction=LogDirection.RESPONSE.value,
            method=method,
            endpoint=endpoint,
            payment_id=payment_id,
            response_body=_serialize(body),
            status_code=status_code,
            error_message=error_message,
        )

    def log_webhook(self, body: Any, payment_id: str | None = None) -> LogWriteResult:
        return self._write(
            operation_type=GatewayOperation.WEBHOOK.value,
            direction=LogDirection.REQUEST.value,
            method="POST",
            endpoint="/webhooks/cielo",
            payment_id=payment_id,
            request_body=_serialize(body),
        )

    def _write(self, **fields: Any) -> LogWriteResult:
        try:
            session = self.session_factory()
        except Exception as exc:  # noqa: BLE001
            logger.error("[GATEWAY_LOGGER] Could not open session: %s", exc)
            return LogWriteResult(ok=False, error=str(exc))
        try:
            entry = GatewayLog(gateway_name=self.gateway_name, company_id=self.company_id, **fields)
            session.add(entry)
            session.commit()
            return LogWriteResult(ok=True, log_id=entry.id)
        except Exception as exc:  # noqa: BLE001
            session.rollback()
            logger.error(
                "[GATEWAY_LOGGER] Error logging %s %s: %s",
                fields.get("operation_type"),
                fields.get("direction"),
                exc,
            )
            return LogWriteResult(ok=False, error=str(exc))
        finally:
            session.close()
