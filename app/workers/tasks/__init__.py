"""
Celery Tasks Module.

Sub-modules:
- transaction_tasks: pending-charge expiry and background status sync
"""
from __future__ import annotations

from .transaction_tasks import (
    expire_stale_pending,
    sync_transaction_status,
)

__all__ = [
    "expire_stale_pending",
    "sync_transaction_status",
]
