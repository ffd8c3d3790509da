from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.errors import ConflictError, NotFoundError
from ..db.session import transaction
from ..models.department import Department


def list_departments(db: Session, *, active_only: bool = False) -> list[Department]:
    stmt = select(Department).order_by(Department.name)
    if active_only:
        stmt = stmt.where(Department.is_active.is_(True))
    return db.execute(stmt).scalars().all()


def require_department(db: Session, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None:
        raise NotFoundError(f"Department {department_id} not found", code="department_not_found")
    return department


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Department.id).where(Department.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_department(db: Session, payload: dict[str, Any]) -> Department:
    if _name_taken(db, payload["name"]):
        raise ConflictError(f"Department {payload['name']!r} already exists", code="duplicate_department")
    now = utcnow_iso()
    department = Department(**payload, created_at=now, updated_at=now)
    try:
        with transaction(db):
            db.add(department)
    except IntegrityError as exc:
        raise ConflictError(f"Department {payload['name']!r} already exists", code="duplicate_department") from exc
    db.refresh(department)
    return department


def update_department(db: Session, department: Department, payload: dict[str, Any]) -> Department:
    values = {key: value for key, value in payload.items() if not (key in ("name", "is_active") and value is None)}
    if "name" in values and _name_taken(db, values["name"], exclude_id=department.id):
        raise ConflictError(f"Department {values['name']!r} already exists", code="duplicate_department")
    for key, value in values.items():
        setattr(department, key, value)
    department.updated_at = utcnow_iso()
    with transaction(db):
        db.add(department)
    db.refresh(department)
    return department


def delete_department(db: Session, department: Department) -> None:
    # Assets keep their free-text department name.
    with transaction(db):
        db.delete(department)
