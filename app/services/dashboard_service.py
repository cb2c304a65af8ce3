"""Admin dashboard aggregation for a single tenant."""

from __future__ import annotations

import datetime as dt
from collections import OrderedDict
from decimal import Decimal

from sqlalchemy import case, func
from sqlalchemy.orm import Session, aliased

from app.models import models
from app.models.payment_models import Transaction, TransactionStatus
from app.models.schemas import (
    AdminDashboard,
    DashboardKpis,
    MethodRevenue,
    MonthlyRevenue,
    RecentTransaction,
    RegionRevenue,
)

RECENT_LIMIT = 10
NO_REGION = "Sem região"


def _approved(company_id: str):
    return (
        Transaction.company_id == company_id,
        Transaction.status == TransactionStatus.APPROVED,
        Transaction.deleted_at.is_(None),
    )


def calculate_kpis(db: Session, company_id: str) -> DashboardKpis:
    role_rows = (
        db.query(models.User.role, func.count(models.User.id))
        .filter(models.User.company_id == company_id, models.User.deleted_at.is_(None))
        .group_by(models.User.role)
        .all()
    )
    users_by_role = {role.value: count for role, count in role_rows}

    totals = (
        db.query(
            func.count(Transaction.id).label("total"),
            func.sum(case((Transaction.status == TransactionStatus.APPROVED, 1), else_=0)).label("approved"),
            func.sum(case((Transaction.status == TransactionStatus.PENDING, 1), else_=0)).label("pending"),
            func.sum(
                case((Transaction.status == TransactionStatus.APPROVED, Transaction.amount), else_=0)
            ).label("revenue"),
        )
        .filter(Transaction.company_id == company_id, Transaction.deleted_at.is_(None))
        .first()
    )

    return DashboardKpis(
        users_by_role=users_by_role,
        total_users=sum(users_by_role.values()),
        total_transactions=totals.total or 0,
        approved_transactions=totals.approved or 0,
        pending_transactions=totals.pending or 0,
        approved_revenue=Decimal(str(totals.revenue or 0)),
    )


def calculate_revenue_by_method(db: Session, company_id: str) -> list[MethodRevenue]:
    rows = (
        db.query(
            Transaction.payment_method,
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        )
        .filter(*_approved(company_id))
        .group_by(Transaction.payment_method)
        .all()
    )
    result = [
        MethodRevenue(payment_method=method.value, total=Decimal(str(total)), count=count)
        for method, total, count in rows
    ]
    return sorted(result, key=lambda r: r.total, reverse=True)


def calculate_revenue_by_region(db: Session, company_id: str) -> list[RegionRevenue]:
    """Approved revenue grouped by the region of the contributor's supervisor.

    Contributors without a supervisor fall back to their own region.
    """
    contributor = aliased(models.User)
    supervisor = aliased(models.User)
    region_id = func.coalesce(supervisor.region_id, contributor.region_id)

    rows = (
        db.query(
            region_id.label("region_id"),
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        )
        .join(contributor, Transaction.contributor_id == contributor.id)
        .outerjoin(supervisor, contributor.supervisor_id == supervisor.id)
        .filter(*_approved(company_id))
        .group_by(region_id)
        .all()
    )

    ids = [rid for rid, _, _ in rows if rid]
    regions = {
        r.id: r
        for r in db.query(models.Region).filter(models.Region.id.in_(ids)).all()
    } if ids else {}

    result = []
    for rid, total, count in rows:
        region = regions.get(rid)
        result.append(
            RegionRevenue(
                region_id=rid if region else None,
                region_name=region.name if region else NO_REGION,
                color=region.color if region else None,
                total=Decimal(str(total)),
                count=count,
            )
        )
    return sorted(result, key=lambda r: r.total, reverse=True)


def _month_starts(today: dt.date, months: int) -> list[dt.date]:
    starts = []
    year, month = today.year, today.month
    for _ in range(months):
        starts.append(dt.date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def calculate_monthly_revenue(
    db: Session, company_id: str, months: int = 6, today: dt.date | None = None
) -> list[MonthlyRevenue]:
    """Approved revenue per calendar month, oldest first, including empty months."""
    today = today or dt.datetime.now(dt.timezone.utc).date()
    starts = _month_starts(today, months)
    buckets: OrderedDict[str, list] = OrderedDict(
        (start.strftime("%Y-%m"), [Decimal("0"), 0]) for start in starts
    )

    since = dt.datetime.combine(starts[0], dt.time.min)
    rows = (
        db.query(Transaction.created_at, Transaction.amount)
        .filter(*_approved(company_id), Transaction.created_at >= since)
        .all()
    )
    for created_at, amount in rows:
        key = created_at.strftime("%Y-%m")
        if key in buckets:
            buckets[key][0] += Decimal(amount)
            buckets[key][1] += 1

    return [MonthlyRevenue(month=key, total=total, count=count) for key, (total, count) in buckets.items()]


def list_recent_transactions(db: Session, company_id: str, limit: int = RECENT_LIMIT) -> list[RecentTransaction]:
    rows = (
        db.query(Transaction, models.User.name)
        .join(models.User, Transaction.contributor_id == models.User.id)
        .filter(Transaction.company_id == company_id, Transaction.deleted_at.is_(None))
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        RecentTransaction(
            id=tx.id,
            contributor_name=name,
            amount=tx.amount,
            status=tx.status.value,
            payment_method=tx.payment_method.value,
            created_at=tx.created_at,
        )
        for tx, name in rows
    ]


def build_admin_dashboard(db: Session, company_id: str, months: int = 6) -> AdminDashboard:
    return AdminDashboard(
        company_id=company_id,
        kpis=calculate_kpis(db, company_id),
        revenue_by_method=calculate_revenue_by_method(db, company_id),
        revenue_by_region=calculate_revenue_by_region(db, company_id),
        monthly_revenue=calculate_monthly_revenue(db, company_id, months),
        recent_transactions=list_recent_transactions(db, company_id),
    )
