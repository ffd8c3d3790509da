from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..core.clock import local_today
from ..core.config import settings
from ..core.enums import Role, STAFF_ROLES
from ..crud.borrows import list_borrow_records, list_overdue, list_upcoming_returns, require_borrow_record
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..models.user import User
from ..schemas.borrow import (
    BorrowCreate,
    BorrowExtend,
    BorrowOut,
    BorrowReturn,
    ReminderResult,
    SweepResult,
)
from ..schemas.common import Page
from ..services.borrowing import (
    delete_borrow_record,
    extend_borrow,
    process_return,
    release_asset,
    send_return_reminders,
    sweep_overdue,
)
from ..services.notifications import BackgroundNotifier
from ..services.reporting import borrow_overview
from .params import PageQuery

router = APIRouter(prefix="/api/v1/borrow", tags=["borrow"], dependencies=[Depends(get_current_user)])

require_staff = require_roles(*STAFF_ROLES)
require_admin = require_roles(Role.ADMIN.value)


@router.get("", response_model=Page[BorrowOut])
def api_list_borrows(
    paging: PageQuery = Depends(),
    status_filter: Optional[str] = Query(None, alias="status"),
    department: Optional[str] = None,
    inventory_id: Optional[int] = Query(None, alias="inventoryId"),
    db: Session = Depends(get_db),
):
    params = paging.to_params(status=status_filter, borrower_department=department, inventory_id=inventory_id)
    return list_borrow_records(db, params)


@router.get("/overdue", response_model=list[BorrowOut])
def api_overdue(db: Session = Depends(get_db)):
    return list_overdue(db, local_today())


@router.get("/upcoming", response_model=list[BorrowOut])
def api_upcoming(days: int = Query(settings.UPCOMING_RETURN_DAYS, ge=0, le=365), db: Session = Depends(get_db)):
    return list_upcoming_returns(db, local_today(), days)


@router.get("/statistics")
def api_borrow_statistics(db: Session = Depends(get_db)) -> dict[str, Any]:
    return borrow_overview(db, local_today())


@router.post("/sweep-overdue", response_model=SweepResult, dependencies=[Depends(require_staff)])
def api_sweep_overdue(as_of: Optional[date] = Query(None, alias="asOf"), db: Session = Depends(get_db)):
    cutoff = as_of or local_today()
    return SweepResult(as_of=cutoff.isoformat(), updated=sweep_overdue(db, cutoff))


@router.post("/send-reminders", response_model=ReminderResult, dependencies=[Depends(require_admin)])
def api_send_reminders(days: int = Query(settings.REMINDER_DAYS, ge=0, le=365), db: Session = Depends(get_db)):
    return send_return_reminders(db, days)


@router.get("/{record_id}", response_model=BorrowOut)
def api_get_borrow(record_id: int, db: Session = Depends(get_db)):
    return require_borrow_record(db, record_id)


@router.post("", response_model=BorrowOut, status_code=status.HTTP_201_CREATED)
def api_release_asset(
    payload: BorrowCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return release_asset(
        db,
        payload.model_dump(),
        approved_by=user.id,
        notifier=BackgroundNotifier(background_tasks),
    )


@router.put("/{record_id}/return", response_model=BorrowOut)
def api_return_asset(
    record_id: int,
    payload: BorrowReturn,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return process_return(
        db,
        record_id,
        payload.model_dump(),
        processed_by=user.id,
        notifier=BackgroundNotifier(background_tasks),
    )


@router.put("/{record_id}/extend", response_model=BorrowOut, dependencies=[Depends(require_staff)])
def api_extend_borrow(record_id: int, payload: BorrowExtend, db: Session = Depends(get_db)):
    return extend_borrow(db, record_id, payload.model_dump())


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def api_delete_borrow(record_id: int, db: Session = Depends(get_db)):
    delete_borrow_record(db, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
