from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.clock import local_today
from ..core.enums import STAFF_ROLES
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..schemas.report import (
    ActivityReportOut,
    BorrowReportOut,
    DashboardOut,
    DepartmentReportOut,
    InventoryReportOut,
)
from ..services.csv_export import borrow_csv, inventory_csv
from ..services.reporting import (
    activity_report,
    borrow_report,
    dashboard_summary,
    department_report,
    inventory_report,
)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(get_current_user)])

require_staff = require_roles(*STAFF_ROLES)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/dashboard", response_model=DashboardOut)
def api_dashboard(db: Session = Depends(get_db)):
    return dashboard_summary(db, local_today())


@router.get("/inventory", response_model=InventoryReportOut, dependencies=[Depends(require_staff)])
def api_inventory_report(
    department: Optional[str] = None,
    status: Optional[str] = None,
    pc_type: Optional[str] = Query(None, alias="pcType"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    output: Literal["json", "csv"] = Query("json", alias="format"),
    db: Session = Depends(get_db),
):
    report = inventory_report(
        db,
        {
            "department": department,
            "status": status,
            "pc_type": pc_type,
            "start_date": start_date,
            "end_date": end_date,
        },
    )
    if output == "csv":
        return _csv_response(inventory_csv(report["items"]), "inventory-report.csv")
    return report


@router.get("/borrow", response_model=BorrowReportOut, dependencies=[Depends(require_staff)])
def api_borrow_report(
    status: Optional[str] = None,
    department: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    output: Literal["json", "csv"] = Query("json", alias="format"),
    db: Session = Depends(get_db),
):
    report = borrow_report(
        db,
        {"status": status, "department": department, "start_date": start_date, "end_date": end_date},
    )
    if output == "csv":
        return _csv_response(borrow_csv(report["records"]), "borrow-report.csv")
    return report


@router.get("/departments", response_model=DepartmentReportOut, dependencies=[Depends(require_staff)])
def api_department_report(db: Session = Depends(get_db)):
    return department_report(db)


@router.get("/activity", response_model=ActivityReportOut, dependencies=[Depends(require_staff)])
def api_activity_report(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    return activity_report(db, local_today(), days)
