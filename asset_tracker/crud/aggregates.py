"""Named aggregate queries used by the reporting layer."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session


def count_where(db: Session, model: Any, *criteria: Any) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return int(db.execute(stmt).scalar_one() or 0)


def count_by(db: Session, column: Any, *criteria: Any) -> dict[str, int]:
    """Grouped counts keyed by ``column``'s value, largest group first."""

    label = func.count().label("count")
    stmt = select(column, label).group_by(column).order_by(label.desc(), column)
    if criteria:
        stmt = stmt.where(*criteria)
    return {str(key) if key is not None else "": int(count) for key, count in db.execute(stmt).all()}


def sum_where(db: Session, column: Any, *criteria: Any) -> float:
    stmt = select(func.coalesce(func.sum(func.coalesce(column, 0)), 0))
    if criteria:
        stmt = stmt.where(*criteria)
    return float(db.execute(stmt).scalar_one() or 0)
