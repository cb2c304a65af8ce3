from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.rate_limit import rate_limit_stats
from app.db.session import get_db
from app.services.config_cache import InMemoryStore, build_store

router = APIRouter(tags=["health"])


def _check_db(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


def _check_cache() -> str:
    store = build_store()
    if isinstance(store, InMemoryStore):
        return "memory"
    try:
        from app.db.redis_client import get_redis_client
        return "redis" if get_redis_client().ping() else "down"
    except Exception:  # noqa: BLE001
        return "down"


@router.get("/healthz")
def healthz(db: Annotated[Session, Depends(get_db)]) -> dict[str, str]:
    """Basic liveness probe (cheap)."""
    try:
        _check_db(db)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=503, detail="Database connectivity check failed") from exc
    return {"status": "ok"}


@router.get("/ready")
def ready(db: Annotated[Session, Depends(get_db)]) -> dict[str, object]:
    """Readiness probe: database plus configuration cache backend."""
    start = time.time()
    try:
        db_ok = _check_db(db)
    except Exception:  # noqa: BLE001
        db_ok = False
    cache = _check_cache()
    duration_ms = int((time.time() - start) * 1000)
    if not db_ok or cache == "down":
        raise HTTPException(status_code=503, detail={"db": db_ok, "cache": cache, "latency_ms": duration_ms})
    return {
        "status": "ready",
        "db": db_ok,
        "cache": cache,
        "latency_ms": duration_ms,
        "rate_limited": rate_limit_stats()["exceeded"],
    }
