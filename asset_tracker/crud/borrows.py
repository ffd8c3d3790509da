"""Read side of borrow records. State changes live in ``services.borrowing``."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from sqlalchemy import asc, desc, select
from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_BORROW_STATUSES, SWEEPABLE_BORROW_STATUSES, BorrowStatus
from ..core.errors import NotFoundError
from ..models.borrow import BorrowRecord
from .filters import ListParams, ListSpec, paginate

BORROW_LIST_SPEC = ListSpec(
    search_columns=(
        BorrowRecord.borrower_name,
        BorrowRecord.borrower_department,
        BorrowRecord.borrower_email,
    ),
    filter_columns={
        "status": BorrowRecord.status,
        "borrower_department": BorrowRecord.borrower_department,
        "inventory_id": BorrowRecord.inventory_id,
    },
    integer_filters=frozenset({"inventory_id"}),
    date_column=BorrowRecord.borrow_date,
    sortable={
        "created_at": BorrowRecord.created_at,
        "borrow_date": BorrowRecord.borrow_date,
        "expected_return_date": BorrowRecord.expected_return_date,
        "actual_return_date": BorrowRecord.actual_return_date,
        "borrower_name": BorrowRecord.borrower_name,
        "status": BorrowRecord.status,
    },
    default_order=(desc(BorrowRecord.created_at), desc(BorrowRecord.id)),
)


def list_borrow_records(db: Session, params: ListParams) -> dict[str, Any]:
    return paginate(db, select(BorrowRecord), params, BORROW_LIST_SPEC)


def require_borrow_record(db: Session, record_id: int) -> BorrowRecord:
    record = db.get(BorrowRecord, record_id)
    if record is None:
        raise NotFoundError(f"Borrow record {record_id} not found", code="borrow_not_found")
    return record


def active_borrow_for(db: Session, inventory_id: int) -> BorrowRecord | None:
    stmt = select(BorrowRecord).where(
        BorrowRecord.inventory_id == inventory_id,
        BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES),
    )
    return db.execute(stmt).unique().scalars().first()


def list_overdue(db: Session, today: date) -> list[BorrowRecord]:
    """Records already marked Overdue plus active ones past their due date.

    Pure read; promoting the status is the sweep's job.
    """

    stmt = (
        select(BorrowRecord)
        .where(
            BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES),
            (BorrowRecord.status == BorrowStatus.OVERDUE.value)
            | (BorrowRecord.expected_return_date < today.isoformat()),
        )
        .order_by(asc(BorrowRecord.expected_return_date), asc(BorrowRecord.id))
    )
    return db.execute(stmt).unique().scalars().all()


def list_upcoming_returns(
    db: Session,
    today: date,
    days: int,
    *,
    statuses: tuple[str, ...] = SWEEPABLE_BORROW_STATUSES,
) -> list[BorrowRecord]:
    """Active records due between ``today`` and ``today + days`` inclusive."""

    stmt = (
        select(BorrowRecord)
        .where(
            BorrowRecord.status.in_(statuses),
            BorrowRecord.expected_return_date >= today.isoformat(),
            BorrowRecord.expected_return_date <= (today + timedelta(days=days)).isoformat(),
        )
        .order_by(asc(BorrowRecord.expected_return_date), asc(BorrowRecord.id))
    )
    return db.execute(stmt).unique().scalars().all()
