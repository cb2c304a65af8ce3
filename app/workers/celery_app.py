from __future__ import annotations

from celery import Celery

from app.core.config import settings

EXPIRE_PENDING_INTERVAL_SECONDS = 5 * 60


def _create_celery() -> Celery:
    broker_url = settings.REDIS_URL or "memory://"
    celery = Celery(
        "contribui",
        broker=broker_url,
        backend=settings.REDIS_URL or "cache+memory://",
        include=["app.workers.tasks"],
    )
    celery.conf.update(
        task_default_queue="default",
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="America/Sao_Paulo",
        enable_utc=True,
        task_always_eager=settings.ENV.lower() in {"test"},
    )
    # Beat schedule (only active outside test env)
    if settings.ENV.lower() not in {"test"}:
        celery.conf.beat_schedule = {
            "expire-stale-pending-transactions": {
                "task": "transactions.expire_stale_pending",
                "schedule": EXPIRE_PENDING_INTERVAL_SECONDS,
            }
        }
    return celery


celery_app = _create_celery()
