"""Sentry wiring for the API and the Celery workers."""
import logging

from app.core.config import settings
from app.core.sanitizer import sanitize_payload

logger = logging.getLogger(__name__)

_initialized = False


def scrub_event(event: dict, hint: dict | None = None) -> dict:
    """Mask card data and Cielo credentials before an event leaves the process."""
    request = event.get("request")
    if isinstance(request, dict):
        if "data" in request:
            request["data"] = sanitize_payload(request["data"])
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = sanitize_payload(headers)
    extra = event.get("extra")
    if isinstance(extra, dict):
        event["extra"] = sanitize_payload(extra)
    return event


def init_monitoring() -> None:
    global _initialized
    if _initialized:
        return
    dsn = getattr(settings, "SENTRY_DSN", None)
    if dsn:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.celery import CeleryIntegration
            from sentry_sdk.integrations.fastapi import FastApiIntegration

            sentry_sdk.init(
                dsn=dsn,
                integrations=[FastApiIntegration(), CeleryIntegration()],
                traces_sample_rate=0.1,
                environment=settings.ENV,
                release=f"contribui-backend@{settings.ENV}",
                send_default_pii=False,
                before_send=scrub_event,
            )
            logger.info("Sentry initialized")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to init Sentry: %s", exc)
    _initialized = True
