from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..core.enums import Role, STAFF_ROLES
from ..crud.disposals import list_disposable_items, list_disposals, require_disposal
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..models.user import User
from ..schemas.common import Page
from ..schemas.disposal import (
    DisposalCancel,
    DisposalComplete,
    DisposalCreate,
    DisposalOut,
    DisposalUpdate,
)
from ..schemas.inventory import InventoryBrief
from ..services.disposals import (
    approve_disposal,
    cancel_disposal,
    complete_disposal,
    delete_disposal,
    request_disposal,
    update_disposal,
)
from ..services.reporting import disposal_overview
from .params import PageQuery

router = APIRouter(prefix="/api/v1/disposals", tags=["disposals"], dependencies=[Depends(get_current_user)])

require_staff = require_roles(*STAFF_ROLES)
require_admin = require_roles(Role.ADMIN.value)


@router.get("", response_model=Page[DisposalOut])
def api_list_disposals(
    paging: PageQuery = Depends(),
    status_filter: Optional[str] = Query(None, alias="status"),
    disposal_method: Optional[str] = Query(None, alias="disposalMethod"),
    inventory_id: Optional[int] = Query(None, alias="inventoryId"),
    db: Session = Depends(get_db),
):
    params = paging.to_params(status=status_filter, disposal_method=disposal_method, inventory_id=inventory_id)
    return list_disposals(db, params)


@router.get("/statistics", dependencies=[Depends(require_staff)])
def api_disposal_statistics(db: Session = Depends(get_db)) -> dict[str, Any]:
    return disposal_overview(db)


@router.get("/available-items", response_model=list[InventoryBrief])
def api_available_items(search: Optional[str] = None, db: Session = Depends(get_db)):
    return list_disposable_items(db, search)


@router.get("/{disposal_id}", response_model=DisposalOut)
def api_get_disposal(disposal_id: int, db: Session = Depends(get_db)):
    return require_disposal(db, disposal_id)


@router.post("", response_model=DisposalOut, status_code=status.HTTP_201_CREATED)
def api_request_disposal(payload: DisposalCreate, user: User = Depends(require_staff), db: Session = Depends(get_db)):
    return request_disposal(db, payload.model_dump(), requested_by=user.id)


@router.put("/{disposal_id}", response_model=DisposalOut, dependencies=[Depends(require_staff)])
def api_update_disposal(disposal_id: int, payload: DisposalUpdate, db: Session = Depends(get_db)):
    return update_disposal(db, disposal_id, payload.changes())


@router.put("/{disposal_id}/approve", response_model=DisposalOut)
def api_approve_disposal(disposal_id: int, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return approve_disposal(db, disposal_id, approved_by=user.id)


@router.put("/{disposal_id}/complete", response_model=DisposalOut)
def api_complete_disposal(
    disposal_id: int,
    payload: DisposalComplete,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return complete_disposal(db, disposal_id, payload.model_dump(), disposed_by=user.id)


@router.put("/{disposal_id}/cancel", response_model=DisposalOut, dependencies=[Depends(require_admin)])
def api_cancel_disposal(disposal_id: int, payload: DisposalCancel, db: Session = Depends(get_db)):
    return cancel_disposal(db, disposal_id, payload.model_dump())


@router.delete("/{disposal_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def api_delete_disposal(disposal_id: int, db: Session = Depends(get_db)):
    delete_disposal(db, disposal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
