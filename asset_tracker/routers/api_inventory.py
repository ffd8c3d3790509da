from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..core.enums import Role, STAFF_ROLES
from ..crud.inventory import (
    bulk_import,
    create_inventory,
    delete_inventory,
    list_inventory,
    list_inventory_departments,
    recent_borrows,
    require_inventory,
    update_inventory,
)
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..schemas.borrow import BorrowOut, InventoryDetail
from ..schemas.common import Page
from ..schemas.inventory import (
    BulkImportRequest,
    BulkImportResult,
    InventoryCreate,
    InventoryOut,
    InventoryUpdate,
)
from ..services.reporting import inventory_overview
from .params import PageQuery

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"], dependencies=[Depends(get_current_user)])

require_staff = require_roles(*STAFF_ROLES)
require_admin = require_roles(Role.ADMIN.value)


@router.get("", response_model=Page[InventoryOut])
def api_list_inventory(
    paging: PageQuery = Depends(),
    department: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    pc_type: Optional[str] = Query(None, alias="pcType"),
    windows_version: Optional[str] = Query(None, alias="windowsVersion"),
    is_borrowed: Optional[str] = Query(None, alias="isBorrowed"),
    db: Session = Depends(get_db),
):
    params = paging.to_params(
        department=department,
        status=status_filter,
        pc_type=pc_type,
        windows_version=windows_version,
        is_borrowed=is_borrowed,
    )
    return list_inventory(db, params)


@router.get("/departments", response_model=list[str])
def api_inventory_departments(db: Session = Depends(get_db)):
    return list_inventory_departments(db)


@router.get("/statistics")
def api_inventory_statistics(db: Session = Depends(get_db)) -> dict[str, Any]:
    return inventory_overview(db)


@router.get("/{inventory_id}", response_model=InventoryDetail)
def api_get_inventory(inventory_id: int, db: Session = Depends(get_db)):
    item = require_inventory(db, inventory_id)
    detail = InventoryDetail.model_validate(item, from_attributes=True)
    detail.borrow_records = [BorrowOut.model_validate(record) for record in recent_borrows(db, inventory_id)]
    return detail


@router.post("", response_model=InventoryOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_staff)])
def api_create_inventory(payload: InventoryCreate, db: Session = Depends(get_db)):
    return create_inventory(db, payload.model_dump())


@router.post("/bulk-import", response_model=BulkImportResult, dependencies=[Depends(require_admin)])
def api_bulk_import(payload: BulkImportRequest, db: Session = Depends(get_db)):
    return bulk_import(db, payload.items)


@router.put("/{inventory_id}", response_model=InventoryOut, dependencies=[Depends(require_staff)])
def api_update_inventory(inventory_id: int, payload: InventoryUpdate, db: Session = Depends(get_db)):
    item = require_inventory(db, inventory_id)
    return update_inventory(db, item, payload.changes())


@router.delete("/{inventory_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_staff)])
def api_delete_inventory(inventory_id: int, db: Session = Depends(get_db)):
    delete_inventory(db, inventory_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
