"""Read side of disposals. Transitions live in ``services.disposals``."""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.enums import OPEN_DISPOSAL_STATUSES, AssetStatus
from ..core.errors import NotFoundError
from ..models.disposal import Disposal
from ..models.inventory import Inventory
from .filters import ListParams, ListSpec, paginate

DISPOSAL_LIST_SPEC = ListSpec(
    search_columns=(
        Inventory.full_name,
        Inventory.pc_name,
        Inventory.serial_number,
        Inventory.department,
    ),
    filter_columns={
        "status": Disposal.status,
        "disposal_method": Disposal.disposal_method,
        "inventory_id": Disposal.inventory_id,
    },
    integer_filters=frozenset({"inventory_id"}),
    date_column=Disposal.disposal_date,
    sortable={
        "created_at": Disposal.created_at,
        "disposal_date": Disposal.disposal_date,
        "disposal_method": Disposal.disposal_method,
        "status": Disposal.status,
        "sale_price": Disposal.sale_price,
        "completed_at": Disposal.completed_at,
    },
    default_order=(desc(Disposal.created_at), desc(Disposal.id)),
)

AVAILABLE_ITEMS_LIMIT = 50


def list_disposals(db: Session, params: ListParams) -> dict[str, Any]:
    # Outer join so disposals of since-deleted assets still list.
    stmt = select(Disposal).outerjoin(Inventory, Disposal.inventory_id == Inventory.id)
    return paginate(db, stmt, params, DISPOSAL_LIST_SPEC)


def require_disposal(db: Session, disposal_id: int) -> Disposal:
    disposal = db.get(Disposal, disposal_id)
    if disposal is None:
        raise NotFoundError(f"Disposal {disposal_id} not found", code="disposal_not_found")
    return disposal


def open_disposal_for(db: Session, inventory_id: int) -> Disposal | None:
    stmt = select(Disposal).where(
        Disposal.inventory_id == inventory_id,
        Disposal.status.in_(OPEN_DISPOSAL_STATUSES),
    )
    return db.execute(stmt).unique().scalars().first()


def list_disposable_items(db: Session, search: str | None = None, limit: int = AVAILABLE_ITEMS_LIMIT) -> list[Inventory]:
    """Assets that could be put up for disposal right now."""

    pending = select(Disposal.inventory_id).where(
        Disposal.status.in_(OPEN_DISPOSAL_STATUSES),
        Disposal.inventory_id.is_not(None),
    )
    stmt = select(Inventory).where(
        Inventory.is_borrowed.is_(False),
        Inventory.status != AssetStatus.RETIRED.value,
        Inventory.id.not_in(pending),
    )
    term = (search or "").strip()
    if term:
        stmt = stmt.where(
            Inventory.full_name.icontains(term, autoescape=True)
            | Inventory.pc_name.icontains(term, autoescape=True)
            | Inventory.serial_number.icontains(term, autoescape=True)
        )
    stmt = stmt.order_by(Inventory.full_name, Inventory.id).limit(limit)
    return db.execute(stmt).scalars().all()
