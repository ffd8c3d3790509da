"""Inventory CRUD, listing and bulk import."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, desc, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.enums import OPEN_DISPOSAL_STATUSES, AssetStatus
from ..core.errors import ConflictError, InvalidStateError, NotFoundError
from ..db.session import transaction
from ..models.borrow import BorrowRecord
from ..models.disposal import Disposal
from ..models.inventory import Inventory
from ..schemas.inventory import InventoryCreate
from .common import describe_validation_error, integrity_failure, is_unique_violation, to_storage
from .filters import ListParams, ListSpec, paginate
from .users import require_user

logger = logging.getLogger(__name__)

INVENTORY_LIST_SPEC = ListSpec(
    search_columns=(
        Inventory.full_name,
        Inventory.pc_name,
        Inventory.department,
        Inventory.serial_number,
        Inventory.remarks,
    ),
    filter_columns={
        "department": Inventory.department,
        "status": Inventory.status,
        "pc_type": Inventory.pc_type,
        "windows_version": Inventory.windows_version,
        "is_borrowed": Inventory.is_borrowed,
    },
    boolean_filters=frozenset({"is_borrowed"}),
    date_column=Inventory.created_at,
    sortable={
        "created_at": Inventory.created_at,
        "updated_at": Inventory.updated_at,
        "full_name": Inventory.full_name,
        "department": Inventory.department,
        "pc_name": Inventory.pc_name,
        "pc_type": Inventory.pc_type,
        "status": Inventory.status,
        "serial_number": Inventory.serial_number,
    },
    default_order=(desc(Inventory.created_at), desc(Inventory.id)),
)

RECENT_BORROW_LIMIT = 10


def list_inventory(db: Session, params: ListParams) -> dict[str, Any]:
    return paginate(db, select(Inventory), params, INVENTORY_LIST_SPEC)


def require_inventory(db: Session, inventory_id: int) -> Inventory:
    item = db.get(Inventory, inventory_id)
    if item is None:
        raise NotFoundError(f"Inventory item {inventory_id} not found", code="inventory_not_found")
    return item


def recent_borrows(db: Session, inventory_id: int, limit: int = RECENT_BORROW_LIMIT) -> list[BorrowRecord]:
    stmt = (
        select(BorrowRecord)
        .where(BorrowRecord.inventory_id == inventory_id)
        .order_by(desc(BorrowRecord.created_at), desc(BorrowRecord.id))
        .limit(limit)
    )
    return db.execute(stmt).unique().scalars().all()


def _serial_taken(db: Session, serial_number: str | None, *, exclude_id: int | None = None) -> bool:
    if not serial_number:
        return False
    stmt = select(Inventory.id).where(Inventory.serial_number == serial_number)
    if exclude_id is not None:
        stmt = stmt.where(Inventory.id != exclude_id)
    return db.execute(stmt).first() is not None


def _duplicate_serial(serial_number: str | None) -> ConflictError:
    return ConflictError(
        f"Serial number {serial_number!r} is already registered",
        code="duplicate_serial",
    )


def _build_item(payload: dict[str, Any]) -> Inventory:
    values = to_storage(payload)
    specifications = values.pop("specifications", None)
    values.pop("is_borrowed", None)
    now = utcnow_iso()
    item = Inventory(**values, is_borrowed=False, created_at=now, updated_at=now)
    item.specifications = specifications
    return item


def _ensure_assignee(db: Session, user_id: int | None) -> None:
    if user_id is not None:
        require_user(db, user_id)


def _write_failure(exc: IntegrityError, serial_number: str | None) -> Exception:
    if is_unique_violation(exc):
        return _duplicate_serial(serial_number)
    return integrity_failure(exc)


def create_inventory(db: Session, payload: dict[str, Any]) -> Inventory:
    """Insert a new asset from a validated ``InventoryCreate`` dump."""

    if _serial_taken(db, payload.get("serial_number")):
        raise _duplicate_serial(payload.get("serial_number"))
    _ensure_assignee(db, payload.get("assigned_to"))
    item = _build_item(payload)
    try:
        with transaction(db):
            db.add(item)
    except IntegrityError as exc:
        raise _write_failure(exc, payload.get("serial_number")) from exc
    db.refresh(item)
    logger.info("inventory.created", extra={"extra_data": {"inventory_id": item.id}})
    return item


def _status_guards(new_status: str | None) -> list[Any]:
    if new_status is None:
        return []
    if new_status == AssetStatus.RETIRED.value:
        return [Inventory.is_borrowed.is_(False)]
    return [Inventory.status != AssetStatus.RETIRED.value]


def _rejected_update(db: Session, inventory_id: int, new_status: str | None) -> Exception:
    current = db.execute(
        select(Inventory.is_borrowed, Inventory.status).where(Inventory.id == inventory_id)
    ).one_or_none()
    if current is None:
        return NotFoundError(f"Inventory item {inventory_id} not found", code="inventory_not_found")
    if new_status == AssetStatus.RETIRED.value and current.is_borrowed:
        return ConflictError("A borrowed asset cannot be retired", code="asset_borrowed")
    return InvalidStateError("Retired assets cannot change status", code="asset_retired")


def update_inventory(db: Session, item: Inventory, payload: dict[str, Any]) -> Inventory:
    """Apply a partial update. ``is_borrowed`` is owned by the borrow workflow.

    The status guards travel with the UPDATE, so a borrow committed after
    ``item`` was loaded still blocks retirement.
    """

    values = to_storage(payload)
    values.pop("is_borrowed", None)
    for required in ("full_name", "department", "pc_type", "status", "user_status"):
        if required in values and values[required] is None:
            values.pop(required)
    if "serial_number" in values and _serial_taken(db, values["serial_number"], exclude_id=item.id):
        raise _duplicate_serial(values["serial_number"])
    _ensure_assignee(db, values.get("assigned_to"))
    if "specifications" in values:
        values["specifications_blob"] = Inventory.encode_specifications(values.pop("specifications"))
    new_status = values.get("status")
    values["updated_at"] = utcnow_iso()
    inventory_id = item.id
    try:
        with transaction(db):
            changed = db.execute(
                update(Inventory)
                .where(Inventory.id == inventory_id, *_status_guards(new_status))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if changed.rowcount != 1:
                raise _rejected_update(db, inventory_id, new_status)
    except IntegrityError as exc:
        raise _write_failure(exc, values.get("serial_number")) from exc
    db.refresh(item)
    return item


def delete_inventory(db: Session, inventory_id: int) -> None:
    """Delete an asset that is neither borrowed nor queued for disposal.

    Historical borrow and disposal rows keep their data; only their link to
    the asset is cleared.
    """

    with transaction(db):
        item = require_inventory(db, inventory_id)
        open_disposal = db.execute(
            select(Disposal.id).where(
                Disposal.inventory_id == inventory_id,
                Disposal.status.in_(OPEN_DISPOSAL_STATUSES),
            )
        ).first()
        if open_disposal is not None:
            raise ConflictError(
                "Cannot delete an asset with a pending or approved disposal",
                code="disposal_in_progress",
            )
        db.execute(
            update(BorrowRecord)
            .where(BorrowRecord.inventory_id == inventory_id)
            .values(inventory_id=None)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            update(Disposal)
            .where(Disposal.inventory_id == inventory_id)
            .values(inventory_id=None)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(
            delete(Inventory)
            .where(Inventory.id == inventory_id, Inventory.is_borrowed.is_(False))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Cannot delete a borrowed asset", code="asset_borrowed")
    db.expunge(item)
    logger.info("inventory.deleted", extra={"extra_data": {"inventory_id": inventory_id}})


def bulk_import(db: Session, items: list[dict[str, Any]]) -> dict[str, Any]:
    """Create many assets; a bad row is reported and skipped, never fatal."""

    success = 0
    errors: list[dict[str, Any]] = []
    for index, raw in enumerate(items):
        try:
            payload = InventoryCreate.model_validate(raw).model_dump()
        except ValidationError as exc:
            errors.append({"index": index, "item": raw, "error": describe_validation_error(exc)})
            continue
        if _serial_taken(db, payload.get("serial_number")):
            errors.append({"index": index, "item": raw, "error": str(_duplicate_serial(payload.get("serial_number")))})
            continue
        savepoint = db.begin_nested()
        try:
            db.add(_build_item(payload))
            db.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            errors.append({"index": index, "item": raw, "error": str(exc.orig)})
            continue
        savepoint.commit()
        success += 1
    db.commit()
    logger.info(
        "inventory.bulk_import",
        extra={"extra_data": {"success": success, "failed": len(errors)}},
    )
    return {"success": success, "failed": len(errors), "errors": errors}


def list_inventory_departments(db: Session) -> list[str]:
    stmt = (
        select(Inventory.department)
        .where(Inventory.department.is_not(None), Inventory.department != "")
        .distinct()
        .order_by(Inventory.department)
    )
    return list(db.execute(stmt).scalars().all())
