"""Read-only summaries for dashboards and reports.

Nothing here writes. Counts come from the named aggregates in
``crud.aggregates``; the overdue figure is computed from due dates so it is
correct even when the sweep has not run yet.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import and_, case, desc, func, or_, select
from sqlalchemy.orm import Session

from ..core.clock import utc_iso_days_ago, utcnow_iso
from ..core.config import settings
from ..core.enums import (
    ACTIVE_BORROW_STATUSES,
    SALE_METHODS,
    SWEEPABLE_BORROW_STATUSES,
    AssetStatus,
    BorrowStatus,
    DisposalStatus,
    PcType,
)
from ..crud.aggregates import count_by, count_where, sum_where
from ..models.borrow import BorrowRecord
from ..models.disposal import Disposal
from ..models.inventory import Inventory

TWOPLACES = Decimal("0.01")
RECENT_ACTIVITY_LIMIT = 50
DASHBOARD_RECENT_LIMIT = 5
TREND_MONTHS = 12


def _quantize_currency(value: float | Decimal) -> float:
    amount = Decimal(str(value or 0))
    return float(amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP))


def _overdue_criteria(today: date) -> Any:
    return or_(
        BorrowRecord.status == BorrowStatus.OVERDUE.value,
        and_(
            BorrowRecord.status.in_(SWEEPABLE_BORROW_STATUSES),
            BorrowRecord.expected_return_date < today.isoformat(),
        ),
    )


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def inventory_overview(db: Session) -> dict[str, Any]:
    return {
        "total": count_where(db, Inventory),
        "active": count_where(db, Inventory, Inventory.status == AssetStatus.ACTIVE_USER.value),
        "available": count_where(db, Inventory, Inventory.status == AssetStatus.AVAILABLE.value),
        "maintenance": count_where(db, Inventory, Inventory.status == AssetStatus.MAINTENANCE.value),
        "transfer": count_where(db, Inventory, Inventory.status == AssetStatus.TRANSFER.value),
        "borrowed": count_where(db, Inventory, Inventory.is_borrowed.is_(True)),
        "laptops": count_where(db, Inventory, Inventory.pc_type == PcType.LAPTOP.value),
        "desktops": count_where(db, Inventory, Inventory.pc_type == PcType.DESKTOP.value),
        "by_status": count_by(db, Inventory.status),
        "by_pc_type": count_by(db, Inventory.pc_type),
        "by_department": count_by(db, Inventory.department),
    }


def monthly_borrow_trend(db: Session, today: date, months: int = TREND_MONTHS) -> list[dict[str, Any]]:
    """Borrow counts per calendar month of ``borrow_date``, newest month first.

    Only the ``months`` calendar months ending with the month of ``today``
    are counted; future-dated borrows are left out.
    """

    month = func.substr(BorrowRecord.borrow_date, 1, 7).label("month")
    stmt = (
        select(month, func.count().label("count"))
        .where(
            BorrowRecord.borrow_date >= _month_start(today, months - 1).isoformat(),
            BorrowRecord.borrow_date < _month_start(today, -1).isoformat(),
        )
        .group_by(month)
        .order_by(desc(month))
        .limit(months)
    )
    return [{"month": row.month, "count": int(row.count)} for row in db.execute(stmt).all()]


def borrow_overview(db: Session, today: date, window_days: int | None = None) -> dict[str, Any]:
    window = settings.UPCOMING_RETURN_DAYS if window_days is None else window_days
    horizon = (today + timedelta(days=window)).isoformat()
    return {
        "total": count_where(db, BorrowRecord),
        "active": count_where(db, BorrowRecord, BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES)),
        "returned": count_where(db, BorrowRecord, BorrowRecord.status == BorrowStatus.RETURNED.value),
        "overdue": count_where(db, BorrowRecord, _overdue_criteria(today)),
        "upcoming": count_where(
            db,
            BorrowRecord,
            BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES),
            BorrowRecord.expected_return_date >= today.isoformat(),
            BorrowRecord.expected_return_date <= horizon,
        ),
        "window_days": window,
        "by_status": count_by(db, BorrowRecord.status),
        "monthly_trend": monthly_borrow_trend(db, today),
    }


def disposal_overview(db: Session, now: datetime | None = None, recent_days: int | None = None) -> dict[str, Any]:
    days = settings.RECENT_COMPLETION_DAYS if recent_days is None else recent_days
    completed = Disposal.status == DisposalStatus.COMPLETED.value
    by_status = count_by(db, Disposal.status)
    return {
        "total": count_where(db, Disposal),
        "pending": by_status.get(DisposalStatus.PENDING.value, 0),
        "approved": by_status.get(DisposalStatus.APPROVED.value, 0),
        "completed": by_status.get(DisposalStatus.COMPLETED.value, 0),
        "cancelled": by_status.get(DisposalStatus.CANCELLED.value, 0),
        "by_method": count_by(db, Disposal.disposal_method, completed),
        "total_sale_value": _quantize_currency(
            sum_where(db, Disposal.sale_price, completed, Disposal.disposal_method.in_(SALE_METHODS))
        ),
        "recent_completions": count_where(
            db,
            Disposal,
            completed,
            Disposal.completed_at >= utc_iso_days_ago(days, now=now),
        ),
    }


def dashboard_summary(db: Session, today: date) -> dict[str, Any]:
    inventory = inventory_overview(db)
    borrows = borrow_overview(db, today)
    recent = (
        db.execute(
            select(BorrowRecord)
            .order_by(desc(BorrowRecord.created_at), desc(BorrowRecord.id))
            .limit(DASHBOARD_RECENT_LIMIT)
        )
        .unique()
        .scalars()
        .all()
    )
    return {
        "inventory": {
            key: inventory[key] for key in ("total", "active", "available", "maintenance", "borrowed")
        },
        "pc_types": {"laptops": inventory["laptops"], "desktops": inventory["desktops"]},
        "borrows": {
            "active": borrows["active"],
            "overdue": borrows["overdue"],
            "upcoming_returns": borrows["upcoming"],
        },
        "recent_activity": recent,
    }


def inventory_report(db: Session, filters: dict[str, Any]) -> dict[str, Any]:
    """Every matching asset plus its breakdowns, ordered by department then owner."""

    stmt = select(Inventory)
    for name in ("department", "status", "pc_type"):
        if filters.get(name):
            stmt = stmt.where(getattr(Inventory, name) == filters[name])
    if filters.get("start_date"):
        stmt = stmt.where(Inventory.created_at >= filters["start_date"].isoformat())
    if filters.get("end_date"):
        stmt = stmt.where(Inventory.created_at < (filters["end_date"] + timedelta(days=1)).isoformat())
    items = db.execute(stmt.order_by(Inventory.department, Inventory.full_name, Inventory.id)).scalars().all()

    summary: dict[str, Any] = {
        "total_items": len(items),
        "by_status": {},
        "by_pc_type": {},
        "by_department": {},
        "by_windows_version": {},
    }
    for item in items:
        for key, value in (
            ("by_status", item.status),
            ("by_pc_type", item.pc_type),
            ("by_department", item.department),
            ("by_windows_version", item.windows_version),
        ):
            if value:
                summary[key][value] = summary[key].get(value, 0) + 1
    return {"summary": summary, "items": items, "generated_at": utcnow_iso()}


def borrow_report(db: Session, filters: dict[str, Any]) -> dict[str, Any]:
    stmt = select(BorrowRecord)
    if filters.get("status"):
        stmt = stmt.where(BorrowRecord.status == filters["status"])
    if filters.get("department"):
        stmt = stmt.where(BorrowRecord.borrower_department == filters["department"])
    if filters.get("start_date"):
        stmt = stmt.where(BorrowRecord.borrow_date >= filters["start_date"].isoformat())
    if filters.get("end_date"):
        stmt = stmt.where(BorrowRecord.borrow_date <= filters["end_date"].isoformat())
    records = (
        db.execute(stmt.order_by(desc(BorrowRecord.borrow_date), desc(BorrowRecord.id))).unique().scalars().all()
    )
    by_status: dict[str, int] = {}
    for record in records:
        by_status[record.status] = by_status.get(record.status, 0) + 1
    summary = {
        "total_records": len(records),
        "by_status": by_status,
        "total_borrowed": by_status.get(BorrowStatus.BORROWED.value, 0),
        "total_returned": by_status.get(BorrowStatus.RETURNED.value, 0),
        "total_overdue": by_status.get(BorrowStatus.OVERDUE.value, 0),
        "total_extended": by_status.get(BorrowStatus.EXTENDED.value, 0),
    }
    return {"summary": summary, "records": records, "generated_at": utcnow_iso()}


def _flag_sum(condition: Any) -> Any:
    return func.sum(case((condition, 1), else_=0))


def department_report(db: Session) -> dict[str, Any]:
    stmt = (
        select(
            Inventory.department,
            func.count(Inventory.id).label("total_items"),
            _flag_sum(Inventory.status == AssetStatus.ACTIVE_USER.value).label("active_items"),
            _flag_sum(Inventory.status == AssetStatus.AVAILABLE.value).label("available_items"),
            _flag_sum(Inventory.status == AssetStatus.MAINTENANCE.value).label("maintenance_items"),
            _flag_sum(Inventory.pc_type == PcType.LAPTOP.value).label("laptops"),
            _flag_sum(Inventory.pc_type == PcType.DESKTOP.value).label("desktops"),
            _flag_sum(Inventory.is_borrowed.is_(True)).label("borrowed"),
        )
        .group_by(Inventory.department)
        .order_by(Inventory.department)
    )
    departments = [
        {key: (int(value or 0) if key != "department" else value) for key, value in row._mapping.items()}
        for row in db.execute(stmt).all()
    ]
    return {"departments": departments, "generated_at": utcnow_iso()}


def activity_report(db: Session, today: date, days: int = 30) -> dict[str, Any]:
    since_ts = utc_iso_days_ago(days)
    since_day = (today - timedelta(days=days)).isoformat()
    additions = (
        db.execute(
            select(Inventory)
            .where(Inventory.created_at >= since_ts)
            .order_by(desc(Inventory.created_at), desc(Inventory.id))
            .limit(RECENT_ACTIVITY_LIMIT)
        )
        .scalars()
        .all()
    )
    borrows = (
        db.execute(
            select(BorrowRecord)
            .where(BorrowRecord.created_at >= since_ts)
            .order_by(desc(BorrowRecord.created_at), desc(BorrowRecord.id))
            .limit(RECENT_ACTIVITY_LIMIT)
        )
        .unique()
        .scalars()
        .all()
    )
    returns = (
        db.execute(
            select(BorrowRecord)
            .where(
                BorrowRecord.status == BorrowStatus.RETURNED.value,
                BorrowRecord.actual_return_date >= since_day,
            )
            .order_by(desc(BorrowRecord.actual_return_date), desc(BorrowRecord.id))
            .limit(RECENT_ACTIVITY_LIMIT)
        )
        .unique()
        .scalars()
        .all()
    )
    return {
        "period": f"Last {days} days",
        "recent_additions": {"count": len(additions), "items": additions},
        "recent_borrows": {"count": len(borrows), "items": borrows},
        "recent_returns": {"count": len(returns), "items": returns},
        "generated_at": utcnow_iso(),
    }
