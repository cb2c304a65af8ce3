import logging
import threading

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """Rate-limit key: client IP plus tenant, so one church cannot starve another."""
    company_id = request.headers.get("X-Company-Id") or settings.DEFAULT_COMPANY_ID
    return f"{get_remote_address(request)}:{company_id}"


def _storage_uri() -> str:
    if settings.ENV.lower() != "prod" or not settings.REDIS_URL:
        logger.info("Rate limiter using in-memory storage")
        return "memory://"
    return settings.REDIS_URL


limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri=_storage_uri(),
    enabled=settings.ENV.lower() != "test",
)

RATE_LIMITS = {
    "transaction_create": "20/minute",
    "transaction_sync": "30/minute",
    "webhook_cielo": "300/minute",
}

_rate_limit_lock = threading.Lock()
_rate_limit_counters: dict[str, int] = {"exceeded": 0}


def increment_rate_limit_exceeded():
    with _rate_limit_lock:
        _rate_limit_counters["exceeded"] += 1


def rate_limit_stats() -> dict[str, int]:
    with _rate_limit_lock:
        return dict(_rate_limit_counters)
