"""Gateway configuration: credential resolution and admin updates.

The resolver turns a tenant's ``GatewayConfiguration`` row into the
credential pair for its selected environment. Results are cached through
``ConfigCache``; every write made through ``GatewayConfigService`` drops the
cached entry so the next payment call sees the new credentials.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import (
    GatewayCredentialsMissingError,
    GatewayDisabledError,
    GatewayNotConfiguredError,
)
from app.models.gateway_models import GatewayConfiguration, GatewayEnvironment
from app.services.config_cache import ConfigCache

logger = logging.getLogger(__name__)

CIELO = "Cielo"

_UPDATABLE_FIELDS = (
    "is_active",
    "environment",
    "prod_client_id",
    "prod_client_secret",
    "dev_client_id",
    "dev_client_secret",
    "certificate",
    "certificate_password",
    "accepted_payment_methods",
)
_REQUIRED_FIELDS = frozenset({"is_active", "environment"})


@dataclass(frozen=True)
class GatewayCredentials:
    company_id: str
    gateway_name: str
    merchant_id: str
    merchant_key: str
    environment: GatewayEnvironment
    accepted_payment_methods: tuple[str, ...] = ()

    @property
    def is_production(self) -> bool:
        return self.environment == GatewayEnvironment.PRODUCTION

    def to_cache(self) -> dict[str, Any]:
        data = asdict(self)
        data["environment"] = self.environment.value
        data["accepted_payment_methods"] = list(self.accepted_payment_methods)
        return data

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> GatewayCredentials:
        return cls(
            company_id=data["company_id"],
            gateway_name=data["gateway_name"],
            merchant_id=data["merchant_id"],
            merchant_key=data["merchant_key"],
            environment=GatewayEnvironment(data["environment"]),
            accepted_payment_methods=tuple(data.get("accepted_payment_methods") or ()),
        )


def _parse_methods(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class GatewayConfigResolver:
    """Resolves active credentials for a tenant, failing before any HTTP call."""

    def __init__(self, db: Session, cache: ConfigCache, gateway_name: str = CIELO):
        self.db = db
        self.cache = cache
        self.gateway_name = gateway_name

    def resolve(self, company_id: str) -> GatewayCredentials:
        key = ConfigCache.gateway_key(company_id, self.gateway_name)
        cached = self.cache.get(key)
        if cached is not None:
            return GatewayCredentials.from_cache(cached)

        config = self.db.scalar(
            select(GatewayConfiguration).where(
                GatewayConfiguration.company_id == company_id,
                GatewayConfiguration.gateway_name == self.gateway_name,
            )
        )
        credentials = self._credentials_from_row(company_id, config)
        self.cache.set(key, credentials.to_cache())
        return credentials

    def _credentials_from_row(
        self, company_id: str, config: GatewayConfiguration | None
    ) -> GatewayCredentials:
        if config is None:
            raise GatewayNotConfiguredError(self.gateway_name, company_id)
        if not config.is_active:
            raise GatewayDisabledError(self.gateway_name, company_id)

        environment = GatewayEnvironment(config.environment)
        merchant_id, merchant_key = config.credentials_for(environment)
        if not merchant_id or not merchant_key:
            raise GatewayCredentialsMissingError(self.gateway_name, environment.value)

        return GatewayCredentials(
            company_id=company_id,
            gateway_name=self.gateway_name,
            merchant_id=merchant_id,
            merchant_key=merchant_key,
            environment=environment,
            accepted_payment_methods=_parse_methods(config.accepted_payment_methods),
        )


class GatewayConfigService:
    """Admin-side reads and writes of gateway settings."""

    def __init__(self, db: Session, cache: ConfigCache, gateway_name: str = CIELO):
        self.db = db
        self.cache = cache
        self.gateway_name = gateway_name

    def get_or_create(self, company_id: str) -> GatewayConfiguration:
        config = self.db.scalar(
            select(GatewayConfiguration).where(
                GatewayConfiguration.company_id == company_id,
                GatewayConfiguration.gateway_name == self.gateway_name,
            )
        )
        if config is None:
            config = GatewayConfiguration(
                company_id=company_id,
                gateway_name=self.gateway_name,
                is_active=False,
                environment=GatewayEnvironment.DEVELOPMENT,
            )
            self.db.add(config)
            self.db.commit()
            self.db.refresh(config)
            logger.info("Created default %s configuration for company %s", self.gateway_name, company_id)
        return config

    def update(self, company_id: str, changes: dict[str, Any]) -> GatewayConfiguration:
        """Apply ``changes`` and drop the cached credentials.

        A null ``is_active`` or ``environment`` keeps the stored value; the
        credential fields accept null to clear them.
        """
        config = self.get_or_create(company_id)
        for field in _UPDATABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            if value is None and field in _REQUIRED_FIELDS:
                continue
            if field == "environment":
                value = GatewayEnvironment(value)
            setattr(config, field, value)
        self.db.commit()
        self.db.refresh(config)
        self.invalidate(company_id)
        logger.info(
            "Updated %s configuration for company %s (active=%s, environment=%s)",
            self.gateway_name,
            company_id,
            config.is_active,
            config.environment.value,
        )
        return config

    def invalidate(self, company_id: str) -> None:
        self.cache.invalidate(ConfigCache.gateway_key(company_id, self.gateway_name))
