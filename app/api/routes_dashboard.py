from fastapi import APIRouter, Query

from app.api.dependencies import AdminDep, CompanyIdDep, DbDep
from app.models.schemas import AdminDashboard
from app.services.dashboard_service import build_admin_dashboard

router = APIRouter()


@router.get("/admin", response_model=AdminDashboard)
def admin_dashboard(
    _: AdminDep,
    company_id: CompanyIdDep,
    db: DbDep,
    months: int = Query(6, ge=1, le=24),
):
    return build_admin_dashboard(db, company_id, months=months)
