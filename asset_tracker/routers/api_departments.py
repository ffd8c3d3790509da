from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..core.enums import Role
from ..crud.departments import (
    create_department,
    delete_department,
    list_departments,
    require_department,
    update_department,
)
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..schemas.department import DepartmentCreate, DepartmentOut, DepartmentUpdate

router = APIRouter(prefix="/api/v1/departments", tags=["departments"], dependencies=[Depends(get_current_user)])

require_admin = require_roles(Role.ADMIN.value)


@router.get("", response_model=list[DepartmentOut])
def api_list_departments(active_only: bool = False, db: Session = Depends(get_db)):
    return list_departments(db, active_only=active_only)


@router.get("/{department_id}", response_model=DepartmentOut)
def api_get_department(department_id: int, db: Session = Depends(get_db)):
    return require_department(db, department_id)


@router.post(
    "",
    response_model=DepartmentOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def api_create_department(payload: DepartmentCreate, db: Session = Depends(get_db)):
    return create_department(db, payload.model_dump())


@router.put("/{department_id}", response_model=DepartmentOut, dependencies=[Depends(require_admin)])
def api_update_department(department_id: int, payload: DepartmentUpdate, db: Session = Depends(get_db)):
    department = require_department(db, department_id)
    return update_department(db, department, payload.changes())


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def api_delete_department(department_id: int, db: Session = Depends(get_db)):
    delete_department(db, require_department(db, department_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
