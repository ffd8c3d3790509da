"""Disposal workflow: Pending -> Approved -> Completed, or -> Cancelled.

Transitions follow the same pattern as the borrow workflow: a conditional
UPDATE guarded on the allowed source statuses, inside one transaction with
every paired change to the asset.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.enums import (
    DELETABLE_DISPOSAL_STATUSES,
    OPEN_DISPOSAL_STATUSES,
    AssetStatus,
    DisposalStatus,
)
from ..core.errors import ConflictError, InvalidStateError, NotFoundError
from ..crud.common import integrity_failure, is_unique_violation, to_storage
from ..crud.disposals import open_disposal_for, require_disposal
from ..db.session import transaction
from ..models.disposal import Disposal
from ..models.inventory import Inventory
from ..schemas.disposal import clear_conditional_fields
from .borrowing import NO_REASON, appended_text

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("disposal_date", "disposal_method", "reason")


def _current_status(db: Session, disposal_id: int) -> str | None:
    return db.execute(select(Disposal.status).where(Disposal.id == disposal_id)).scalar_one_or_none()


def _rejected_transition(db: Session, disposal_id: int, action: str) -> InvalidStateError:
    status = _current_status(db, disposal_id)
    if status == DisposalStatus.COMPLETED.value:
        code = "already_completed"
    elif status == DisposalStatus.CANCELLED.value:
        code = "already_cancelled"
    elif status == DisposalStatus.APPROVED.value:
        code = "already_approved"
    else:
        code = "not_approved"
    return InvalidStateError(f"Cannot {action} a disposal that is {status}", code=code)


def _duplicate_disposal(inventory_id: int) -> ConflictError:
    return ConflictError(
        f"Inventory item {inventory_id} already has a pending or approved disposal",
        code="duplicate_disposal",
    )


def _log(event: str, disposal: Disposal, **extra: Any) -> None:
    data = {"disposal_id": disposal.id, "inventory_id": disposal.inventory_id, "status": disposal.status}
    data.update(extra)
    logger.info(event, extra={"extra_data": data})


def request_disposal(db: Session, payload: dict[str, Any], *, requested_by: int | None = None) -> Disposal:
    """Open a Pending disposal for an asset that is not borrowed or retired."""

    values = to_storage(payload)
    inventory_id = values.pop("inventory_id")
    now = utcnow_iso()
    try:
        with transaction(db):
            # Touching the row serialises this request with concurrent releases.
            eligible = db.execute(
                update(Inventory)
                .where(
                    Inventory.id == inventory_id,
                    Inventory.is_borrowed.is_(False),
                    Inventory.status != AssetStatus.RETIRED.value,
                )
                .values(updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if eligible.rowcount != 1:
                current = db.execute(
                    select(Inventory.is_borrowed, Inventory.status).where(Inventory.id == inventory_id)
                ).one_or_none()
                if current is None:
                    raise NotFoundError(f"Inventory item {inventory_id} not found", code="inventory_not_found")
                if current.status == AssetStatus.RETIRED.value:
                    raise InvalidStateError("Retired assets cannot be disposed again", code="asset_retired")
                raise ConflictError("Cannot dispose of a borrowed asset", code="asset_borrowed")
            if open_disposal_for(db, inventory_id) is not None:
                raise _duplicate_disposal(inventory_id)
            disposal = Disposal(
                inventory_id=inventory_id,
                status=DisposalStatus.PENDING.value,
                requested_by_id=requested_by,
                created_at=now,
                updated_at=now,
                **values,
            )
            db.add(disposal)
            db.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise integrity_failure(exc) from exc
        raise _duplicate_disposal(inventory_id) from exc
    db.refresh(disposal)
    _log("disposal.requested", disposal, method=disposal.disposal_method)
    return disposal


def update_disposal(db: Session, disposal_id: int, payload: dict[str, Any]) -> Disposal:
    """Edit the descriptive fields of a disposal that is still Pending."""

    values = to_storage(payload)
    values.pop("inventory_id", None)
    for name in REQUIRED_FIELDS:
        if name in values and values[name] is None:
            values.pop(name)
    with transaction(db):
        disposal = require_disposal(db, disposal_id)
        method = values.get("disposal_method") or disposal.disposal_method
        values = clear_conditional_fields(values, method)
        values["updated_at"] = utcnow_iso()
        changed = db.execute(
            update(Disposal)
            .where(Disposal.id == disposal_id, Disposal.status == DisposalStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if changed.rowcount != 1:
            raise InvalidStateError("Only pending disposals can be edited", code="not_pending")
    db.refresh(disposal)
    _log("disposal.updated", disposal)
    return disposal


def approve_disposal(db: Session, disposal_id: int, *, approved_by: int | None = None) -> Disposal:
    with transaction(db):
        disposal = require_disposal(db, disposal_id)
        approved = db.execute(
            update(Disposal)
            .where(Disposal.id == disposal_id, Disposal.status == DisposalStatus.PENDING.value)
            .values(status=DisposalStatus.APPROVED.value, approved_by_id=approved_by, updated_at=utcnow_iso())
            .execution_options(synchronize_session=False)
        )
        if approved.rowcount != 1:
            raise _rejected_transition(db, disposal_id, "approve")
    db.refresh(disposal)
    _log("disposal.approved", disposal, approved_by=approved_by)
    return disposal


def complete_disposal(
    db: Session,
    disposal_id: int,
    payload: dict[str, Any] | None = None,
    *,
    disposed_by: int | None = None,
) -> Disposal:
    """Finish an Approved disposal and retire the asset for good."""

    payload = payload or {}
    now = utcnow_iso()
    values: dict[str, Any] = {
        "status": DisposalStatus.COMPLETED.value,
        "completed_at": now,
        "disposed_by_id": disposed_by,
        "updated_at": now,
    }
    if payload.get("certificate_number"):
        values["certificate_number"] = payload["certificate_number"]
    if payload.get("notes"):
        values["notes"] = appended_text(Disposal.notes, payload["notes"])
    with transaction(db):
        disposal = require_disposal(db, disposal_id)
        completed = db.execute(
            update(Disposal)
            .where(Disposal.id == disposal_id, Disposal.status == DisposalStatus.APPROVED.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if completed.rowcount != 1:
            raise _rejected_transition(db, disposal_id, "complete")
        if disposal.inventory_id is not None:
            summary = f"Disposed via {disposal.disposal_method} on {disposal.disposal_date}. {disposal.reason}"
            retired = db.execute(
                update(Inventory)
                .where(Inventory.id == disposal.inventory_id, Inventory.is_borrowed.is_(False))
                .values(
                    status=AssetStatus.RETIRED.value,
                    remarks=appended_text(Inventory.remarks, summary),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if retired.rowcount != 1:
                raise ConflictError("The asset is currently borrowed and cannot be retired", code="asset_borrowed")
    db.refresh(disposal)
    db.expire_all()
    _log("disposal.completed", disposal, disposed_by=disposed_by)
    return disposal


def cancel_disposal(db: Session, disposal_id: int, payload: dict[str, Any] | None = None) -> Disposal:
    note = f"Cancellation reason: {(payload or {}).get('notes') or NO_REASON}"
    with transaction(db):
        disposal = require_disposal(db, disposal_id)
        cancelled = db.execute(
            update(Disposal)
            .where(Disposal.id == disposal_id, Disposal.status.in_(OPEN_DISPOSAL_STATUSES))
            .values(
                status=DisposalStatus.CANCELLED.value,
                notes=appended_text(Disposal.notes, note),
                updated_at=utcnow_iso(),
            )
            .execution_options(synchronize_session=False)
        )
        if cancelled.rowcount != 1:
            raise _rejected_transition(db, disposal_id, "cancel")
    db.refresh(disposal)
    _log("disposal.cancelled", disposal)
    return disposal


def delete_disposal(db: Session, disposal_id: int) -> None:
    with transaction(db):
        disposal = require_disposal(db, disposal_id)
        removed = db.execute(
            delete(Disposal)
            .where(Disposal.id == disposal_id, Disposal.status.in_(DELETABLE_DISPOSAL_STATUSES))
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount != 1:
            raise InvalidStateError(
                "Only pending or cancelled disposals can be deleted",
                code="not_deletable",
            )
    db.expunge(disposal)
    logger.info("disposal.deleted", extra={"extra_data": {"disposal_id": disposal_id}})
