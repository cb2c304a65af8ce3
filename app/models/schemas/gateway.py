"""Gateway configuration schemas."""
from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import mask_secret


class GatewayConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    is_active: bool | None = None
    environment: Literal["production", "development"] | None = None
    prod_client_id: str | None = Field(default=None, max_length=255)
    prod_client_secret: str | None = Field(default=None, max_length=255)
    dev_client_id: str | None = Field(default=None, max_length=255)
    dev_client_secret: str | None = Field(default=None, max_length=255)
    certificate: str | None = None
    certificate_password: str | None = Field(default=None, max_length=255)
    accepted_payment_methods: str | None = Field(
        default=None,
        description="Comma separated list, e.g. 'pix,credit_card,boleto'",
    )


class GatewayConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    company_id: str
    gateway_name: str
    is_active: bool
    environment: str
    prod_client_id: str | None = None
    prod_client_secret: str | None = None  # masked
    dev_client_id: str | None = None
    dev_client_secret: str | None = None  # masked
    has_certificate: bool = False
    accepted_payment_methods: str | None = None
    updated_at: dt.datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def mask_credentials(cls, data: Any) -> Any:
        """Build from the ORM row without ever exposing secrets."""
        if isinstance(data, dict):
            return data
        environment = getattr(data, "environment", None)
        return {
            "company_id": data.company_id,
            "gateway_name": data.gateway_name,
            "is_active": bool(data.is_active),
            "environment": getattr(environment, "value", environment),
            "prod_client_id": data.prod_client_id,
            "prod_client_secret": mask_secret(data.prod_client_secret),
            "dev_client_id": data.dev_client_id,
            "dev_client_secret": mask_secret(data.dev_client_secret),
            "has_certificate": bool(data.certificate),
            "accepted_payment_methods": data.accepted_payment_methods,
            "updated_at": data.updated_at,
        }
