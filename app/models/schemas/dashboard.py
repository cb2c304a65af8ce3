"""Admin dashboard schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from .utils import format_brl


class DashboardKpis(BaseModel):
    users_by_role: dict[str, int] = Field(default_factory=dict)
    total_users: int = 0
    total_transactions: int = 0
    approved_transactions: int = 0
    pending_transactions: int = 0
    approved_revenue: Decimal = Decimal("0")

    @field_serializer("approved_revenue")
    def _serialize_revenue(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class MethodRevenue(BaseModel):
    payment_method: str
    total: Decimal
    count: int

    @field_serializer("total")
    def _serialize_total(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class RegionRevenue(BaseModel):
    region_id: str | None  # None groups contributions with no region in their chain
    region_name: str
    color: str | None = None
    total: Decimal
    count: int

    @field_serializer("total")
    def _serialize_total(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class MonthlyRevenue(BaseModel):
    month: str  # "2026-10"
    total: Decimal
    count: int

    @field_serializer("total")
    def _serialize_total(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class RecentTransaction(BaseModel):
    id: str
    contributor_name: str | None
    amount: Decimal
    status: str
    payment_method: str
    created_at: dt.datetime

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> str:
        return format_brl(value) or "0.00"


class AdminDashboard(BaseModel):
    """Everything the admin landing page shows, for one tenant."""
    company_id: str
    kpis: DashboardKpis
    revenue_by_method: list[MethodRevenue]
    revenue_by_region: list[RegionRevenue]
    monthly_revenue: list[MonthlyRevenue]
    recent_transactions: list[RecentTransaction]
