"""Provider webhook payloads."""
from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CieloWebhookIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: uuid.UUID = Field(alias="PaymentId")
    change_type: int = Field(alias="ChangeType", ge=1, le=6)


class WebhookAck(BaseModel):
    status: Literal["processed", "unchanged", "duplicate", "skipped"]
    transaction_id: str | None = None
    transaction_status: str | None = None
    reason: str | None = None
