"""User accounts. Plaintext passwords never reach the table."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import desc, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.errors import ConflictError, DomainValidationError, NotFoundError
from ..core.security import hash_password, verify_password
from ..db.session import transaction
from ..models.borrow import BorrowRecord
from ..models.disposal import Disposal
from ..models.inventory import Inventory
from ..models.user import User
from .common import integrity_failure, is_unique_violation, to_storage
from .filters import ListParams, ListSpec, paginate

logger = logging.getLogger(__name__)

USER_LIST_SPEC = ListSpec(
    search_columns=(User.username, User.email, User.full_name),
    filter_columns={"role": User.role, "department": User.department},
    date_column=User.created_at,
    sortable={
        "created_at": User.created_at,
        "username": User.username,
        "full_name": User.full_name,
        "role": User.role,
        "last_login": User.last_login,
    },
    default_order=(desc(User.created_at), desc(User.id)),
)

# Every column elsewhere that points at a user; cleared when the user goes away.
USER_REFERENCES = (
    (Inventory, Inventory.assigned_to),
    (BorrowRecord, BorrowRecord.borrower_id),
    (BorrowRecord, BorrowRecord.approved_by),
    (BorrowRecord, BorrowRecord.return_processed_by),
    (Disposal, Disposal.requested_by_id),
    (Disposal, Disposal.approved_by_id),
    (Disposal, Disposal.disposed_by_id),
)


def _with_hashed_password(values: dict[str, Any]) -> dict[str, Any]:
    values = dict(values)
    password = values.pop("password", None)
    if password is not None:
        values["password_hash"] = hash_password(password)
    return values


def _ensure_unique(db: Session, *, username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    checks = []
    if username:
        checks.append(User.username == username)
    if email:
        checks.append(User.email == email)
    if not checks:
        return
    stmt = select(User).where(or_(*checks))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    clash = db.execute(stmt).scalars().first()
    if clash is None:
        return
    field = "username" if username and clash.username == username else "email"
    raise ConflictError(f"A user with this {field} already exists", code=f"duplicate_{field}")


def list_users(db: Session, params: ListParams) -> dict[str, Any]:
    return paginate(db, select(User), params, USER_LIST_SPEC)


def require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", code="user_not_found")
    return user


def get_user_by_login(db: Session, login: str) -> User | None:
    stmt = select(User).where(or_(User.username == login, User.email == login.lower()))
    return db.execute(stmt).scalars().first()


def create_user(db: Session, payload: dict[str, Any]) -> User:
    values = _with_hashed_password(to_storage(payload))
    if "password_hash" not in values:
        raise DomainValidationError("password is required", code="password_required")
    _ensure_unique(db, username=values.get("username"), email=values.get("email"))
    now = utcnow_iso()
    user = User(**values, created_at=now, updated_at=now)
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise integrity_failure(exc) from exc
        raise ConflictError("Username or email already exists", code="duplicate_user") from exc
    db.refresh(user)
    logger.info("user.created", extra={"extra_data": {"user_id": user.id, "role": user.role}})
    return user


def update_user(db: Session, user: User, payload: dict[str, Any]) -> User:
    values = _with_hashed_password(to_storage(payload))
    for required in ("username", "email", "full_name", "role", "is_active"):
        if required in values and values[required] is None:
            values.pop(required)
    _ensure_unique(db, username=values.get("username"), email=values.get("email"), exclude_id=user.id)
    for key, value in values.items():
        setattr(user, key, value)
    user.updated_at = utcnow_iso()
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise integrity_failure(exc) from exc
        raise ConflictError("Username or email already exists", code="duplicate_user") from exc
    db.refresh(user)
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise DomainValidationError("Current password is incorrect", code="invalid_password")
    update_user(db, user, {"password": new_password})


def authenticate(db: Session, login: str, password: str) -> User | None:
    """Return the active user matching the credentials and stamp ``last_login``."""

    user = get_user_by_login(db, login.strip())
    if user is None or not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        return None
    user.last_login = utcnow_iso()
    with transaction(db):
        db.add(user)
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> None:
    """Remove a user while keeping every record that mentions them."""

    with transaction(db):
        user = require_user(db, user_id)
        for model, column in USER_REFERENCES:
            db.execute(
                update(model)
                .where(column == user_id)
                .values({column.key: None})
                .execution_options(synchronize_session=False)
            )
        db.delete(user)
    logger.info("user.deleted", extra={"extra_data": {"user_id": user_id}})
