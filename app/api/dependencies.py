"""Common dependencies: database, tenant resolution and admin access."""
import hmac
from typing import Annotated, TypeAlias

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.services.config_cache import ConfigCache, get_config_cache
from app.services.gateway_config_service import GatewayConfigService
from app.services.transaction_service import ClientFactory, TransactionService, default_client_factory

DbDep: TypeAlias = Annotated[Session, Depends(get_db)]
CacheDep: TypeAlias = Annotated[ConfigCache, Depends(get_config_cache)]


def get_company_id(x_company_id: Annotated[str | None, Header()] = None) -> str:
    """Tenant for the request; falls back to DEFAULT_COMPANY_ID."""
    return (x_company_id or "").strip() or settings.DEFAULT_COMPANY_ID


CompanyIdDep: TypeAlias = Annotated[str, Depends(get_company_id)]


def require_admin(x_admin_key: Annotated[str | None, Header()] = None) -> None:
    """Guard for gateway settings, refunds and the dashboard.

    Raises HTTPException 401 when the key is missing or wrong.
    """
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "admin_required", "message": "Invalid or missing X-Admin-Key"},
        )


AdminDep: TypeAlias = Annotated[None, Depends(require_admin)]


def get_client_factory() -> ClientFactory:
    return default_client_factory


def get_gateway_config_service(db: DbDep, cache: CacheDep) -> GatewayConfigService:
    return GatewayConfigService(db, cache)


def get_transaction_service(
    db: DbDep,
    cache: CacheDep,
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> TransactionService:
    return TransactionService(db, cache, client_factory=client_factory)


GatewayConfigServiceDep: TypeAlias = Annotated[GatewayConfigService, Depends(get_gateway_config_service)]
TransactionServiceDep: TypeAlias = Annotated[TransactionService, Depends(get_transaction_service)]
