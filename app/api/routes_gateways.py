import logging

from fastapi import APIRouter

from app.api.dependencies import AdminDep, CompanyIdDep, GatewayConfigServiceDep
from app.models.schemas import GatewayConfigOut, GatewayConfigUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/cielo", response_model=GatewayConfigOut)
def get_cielo_config(_: AdminDep, company_id: CompanyIdDep, svc: GatewayConfigServiceDep):
    """Current Cielo settings; creates an inactive development row on first access."""
    return GatewayConfigOut.model_validate(svc.get_or_create(company_id))


@router.put("/cielo", response_model=GatewayConfigOut)
def update_cielo_config(
    data: GatewayConfigUpdate,
    _: AdminDep,
    company_id: CompanyIdDep,
    svc: GatewayConfigServiceDep,
):
    config = svc.update(company_id, data.model_dump(exclude_unset=True))
    return GatewayConfigOut.model_validate(config)
