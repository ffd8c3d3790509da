"""Borrow lifecycle: release, return, extend, overdue sweep, deletion.

Every operation runs in one transaction. Preconditions are re-checked by the
write itself: each status change is a conditional UPDATE guarded on the
states it may leave, and its row count decides whether the caller won. Two
concurrent releases of the same asset therefore cannot both succeed, and a
sweep can never drag a just-returned record back to Overdue.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import local_today, utcnow_iso
from ..core.enums import (
    ACTIVE_BORROW_STATUSES,
    SWEEPABLE_BORROW_STATUSES,
    AssetStatus,
    BorrowStatus,
    ReturnCondition,
)
from ..core.errors import ConflictError, DomainValidationError, InvalidStateError, NotFoundError
from ..crud.borrows import list_upcoming_returns, require_borrow_record
from ..crud.common import integrity_failure, is_unique_violation
from ..crud.users import require_user
from ..db.session import transaction
from ..models.borrow import BorrowRecord
from ..models.inventory import Inventory
from .notifications import Notifier, OutgoingEmail, borrow_email, deliver, notify

logger = logging.getLogger(__name__)

NO_REASON = "No reason provided"


def appended_text(column: Any, addition: str) -> Any:
    """SQL expression appending ``addition`` to ``column`` after a blank line."""

    return case(
        (or_(column.is_(None), column == ""), addition),
        else_=column + "\n\n" + addition,
    )


def _as_date(value: Any) -> date:
    return value if isinstance(value, date) else date.fromisoformat(str(value))


def _already_borrowed(inventory_id: int) -> ConflictError:
    return ConflictError(f"Inventory item {inventory_id} is already borrowed", code="already_borrowed")


def _already_returned(record_id: int) -> InvalidStateError:
    return InvalidStateError(f"Borrow record {record_id} has already been returned", code="already_returned")


def release_asset(
    db: Session,
    payload: dict[str, Any],
    *,
    approved_by: int | None = None,
    notifier: Notifier | None = None,
    today: date | None = None,
) -> BorrowRecord:
    """Lend an asset to a borrower.

    ``payload`` is a validated ``BorrowCreate`` dump. The asset flips to
    borrowed / Transfer in the same transaction that creates the record.
    """

    inventory_id = payload["inventory_id"]
    borrow_date = _as_date(payload.get("borrow_date") or today or local_today())
    expected = _as_date(payload["expected_return_date"])
    if expected < borrow_date:
        raise DomainValidationError(
            "Expected return date cannot be before the borrow date",
            code="invalid_return_date",
        )
    borrower_id = payload.get("borrower_id")
    if borrower_id is not None:
        require_user(db, borrower_id)
    now = utcnow_iso()
    try:
        with transaction(db):
            claimed = db.execute(
                update(Inventory)
                .where(
                    Inventory.id == inventory_id,
                    Inventory.is_borrowed.is_(False),
                    Inventory.status != AssetStatus.RETIRED.value,
                )
                .values(is_borrowed=True, status=AssetStatus.TRANSFER.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                current = db.execute(
                    select(Inventory.is_borrowed, Inventory.status).where(Inventory.id == inventory_id)
                ).one_or_none()
                if current is None:
                    raise NotFoundError(f"Inventory item {inventory_id} not found", code="inventory_not_found")
                if current.is_borrowed:
                    raise _already_borrowed(inventory_id)
                raise InvalidStateError("Retired assets cannot be borrowed", code="asset_retired")
            record = BorrowRecord(
                inventory_id=inventory_id,
                borrower_id=borrower_id,
                borrower_name=payload["borrower_name"],
                borrower_email=payload.get("borrower_email"),
                borrower_department=payload.get("borrower_department"),
                borrow_date=borrow_date.isoformat(),
                expected_return_date=expected.isoformat(),
                status=BorrowStatus.BORROWED.value,
                purpose=payload.get("purpose"),
                notes=payload.get("notes"),
                approved_by=approved_by,
                created_at=now,
                updated_at=now,
            )
            db.add(record)
            db.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise integrity_failure(exc) from exc
        # The partial unique index caught a concurrent release.
        raise _already_borrowed(inventory_id) from exc
    db.refresh(record)
    logger.info(
        "borrow.released",
        extra={"extra_data": {"borrow_id": record.id, "inventory_id": inventory_id}},
    )
    notify(notifier, borrow_email("borrow_confirmation", record))
    return record


def process_return(
    db: Session,
    record_id: int,
    payload: dict[str, Any] | None = None,
    *,
    processed_by: int | None = None,
    notifier: Notifier | None = None,
    today: date | None = None,
) -> BorrowRecord:
    """Close an active borrow and hand the asset back.

    A Damaged return sends the asset to Maintenance; Good and Lost returns
    put it back to Active User.
    """

    payload = payload or {}
    condition = payload.get("return_condition") or ReturnCondition.GOOD.value
    returned_on = (today or local_today()).isoformat()
    values: dict[str, Any] = {
        "status": BorrowStatus.RETURNED.value,
        "actual_return_date": returned_on,
        "return_condition": condition,
        "return_processed_by": processed_by,
        "updated_at": utcnow_iso(),
    }
    if payload.get("notes"):
        values["notes"] = appended_text(BorrowRecord.notes, payload["notes"])
    asset_status = (
        AssetStatus.MAINTENANCE.value if condition == ReturnCondition.DAMAGED.value else AssetStatus.ACTIVE_USER.value
    )
    with transaction(db):
        record = require_borrow_record(db, record_id)
        inventory_id = record.inventory_id
        closed = db.execute(
            update(BorrowRecord)
            .where(BorrowRecord.id == record_id, BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            raise _already_returned(record_id)
        if inventory_id is not None:
            db.execute(
                update(Inventory)
                .where(Inventory.id == inventory_id)
                .values(is_borrowed=False, status=asset_status, updated_at=values["updated_at"])
                .execution_options(synchronize_session=False)
            )
    db.refresh(record)
    logger.info(
        "borrow.returned",
        extra={"extra_data": {"borrow_id": record_id, "inventory_id": inventory_id, "condition": condition}},
    )
    notify(notifier, borrow_email("return_confirmation", record))
    return record


def extend_borrow(db: Session, record_id: int, payload: dict[str, Any]) -> BorrowRecord:
    """Move the due date of an active borrow and mark it Extended."""

    new_date = _as_date(payload["new_expected_return_date"])
    note = f"Extension: {payload.get('reason') or NO_REASON}"
    with transaction(db):
        record = require_borrow_record(db, record_id)
        if new_date < _as_date(record.borrow_date):
            raise DomainValidationError(
                "New expected return date cannot be before the borrow date",
                code="invalid_return_date",
            )
        extended = db.execute(
            update(BorrowRecord)
            .where(BorrowRecord.id == record_id, BorrowRecord.status.in_(ACTIVE_BORROW_STATUSES))
            .values(
                status=BorrowStatus.EXTENDED.value,
                expected_return_date=new_date.isoformat(),
                notes=appended_text(BorrowRecord.notes, note),
                updated_at=utcnow_iso(),
            )
            .execution_options(synchronize_session=False)
        )
        if extended.rowcount != 1:
            raise _already_returned(record_id)
    db.refresh(record)
    logger.info(
        "borrow.extended",
        extra={"extra_data": {"borrow_id": record_id, "expected_return_date": record.expected_return_date}},
    )
    return record


def sweep_overdue(db: Session, as_of: date | None = None) -> int:
    """Promote Borrowed/Extended records past their due date to Overdue.

    Idempotent: a second run finds nothing left to promote.
    """

    cutoff = (as_of or local_today()).isoformat()
    with transaction(db):
        result = db.execute(
            update(BorrowRecord)
            .where(
                BorrowRecord.status.in_(SWEEPABLE_BORROW_STATUSES),
                BorrowRecord.expected_return_date < cutoff,
            )
            .values(status=BorrowStatus.OVERDUE.value, updated_at=utcnow_iso())
            .execution_options(synchronize_session=False)
        )
    updated = int(result.rowcount or 0)
    db.expire_all()
    logger.info("borrow.overdue_sweep", extra={"extra_data": {"as_of": cutoff, "updated": updated}})
    return updated


def delete_borrow_record(db: Session, record_id: int) -> None:
    """Remove a borrow record; an active one releases its asset first."""

    with transaction(db):
        record = require_borrow_record(db, record_id)
        inventory_id = record.inventory_id
        status = db.execute(select(BorrowRecord.status).where(BorrowRecord.id == record_id)).scalar_one()
        db.execute(
            delete(BorrowRecord)
            .where(BorrowRecord.id == record_id)
            .execution_options(synchronize_session=False)
        )
        if status in ACTIVE_BORROW_STATUSES and inventory_id is not None:
            db.execute(
                update(Inventory)
                .where(Inventory.id == inventory_id)
                .values(is_borrowed=False, updated_at=utcnow_iso())
                .execution_options(synchronize_session=False)
            )
    db.expunge(record)
    db.expire_all()
    was_active = status in ACTIVE_BORROW_STATUSES
    logger.info(
        "borrow.deleted",
        extra={"extra_data": {"borrow_id": record_id, "inventory_id": inventory_id, "was_active": was_active}},
    )


def send_return_reminders(
    db: Session,
    days: int,
    *,
    today: date | None = None,
    send: Callable[[OutgoingEmail], bool] = deliver,
) -> dict[str, int]:
    """Email every borrower whose item is due within ``days``. Runs inline."""

    records = list_upcoming_returns(db, today or local_today(), days)
    messages = [message for message in (borrow_email("return_reminder", record) for record in records) if message]
    sent = 0
    for message in messages:
        if send(message):
            sent += 1
    logger.info(
        "borrow.reminders_sent",
        extra={"extra_data": {"days": days, "total_records": len(messages), "emails_sent": sent}},
    )
    return {"total_records": len(messages), "emails_sent": sent}
