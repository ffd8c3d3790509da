"""Paged, filtered and sorted listing shared by every list endpoint.

Each entity describes what is searchable, filterable, sortable and which
column the ``start_date``/``end_date`` range applies to with a ``ListSpec``.
``paginate`` turns a ``ListParams`` plus that ``ListSpec`` into a page of rows.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Mapping, Sequence

from sqlalchemy import Select, asc, desc, false, func, or_, select
from sqlalchemy.orm import Session

from ..core.config import settings

TRUE_STRINGS = {"true", "1", "yes"}
FALSE_STRINGS = {"false", "0", "no"}


@dataclass
class ListParams:
    page: int = 1
    limit: int = 10
    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    sort_by: str | None = None
    sort_order: str = "DESC"
    filters: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.page = max(1, int(self.page or 1))
        self.limit = min(max(1, int(self.limit or 1)), settings.MAX_PAGE_SIZE)
        self.search = (self.search or "").strip() or None
        self.sort_order = "ASC" if (self.sort_order or "").upper() == "ASC" else "DESC"
        # Absent and blank filter values mean "no constraint".
        self.filters = {key: value for key, value in self.filters.items() if value not in (None, "")}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class ListSpec:
    search_columns: Sequence[Any]
    filter_columns: Mapping[str, Any]
    date_column: Any
    sortable: Mapping[str, Any]
    default_order: Sequence[Any]
    boolean_filters: frozenset[str] = frozenset()
    integer_filters: frozenset[str] = frozenset()


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    return None


def _coerce_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def apply_filters(stmt: Select, params: ListParams, list_spec: ListSpec) -> Select:
    if params.search and list_spec.search_columns:
        stmt = stmt.where(
            or_(*[column.icontains(params.search, autoescape=True) for column in list_spec.search_columns])
        )
    for name, raw in params.filters.items():
        column = list_spec.filter_columns.get(name)
        if column is None:
            continue
        if name in list_spec.boolean_filters:
            value = _coerce_bool(raw)
        elif name in list_spec.integer_filters:
            value = _coerce_int(raw)
        else:
            value = str(raw)
        if value is None:
            # Unrecognised value: match nothing instead of failing.
            stmt = stmt.where(false())
            continue
        stmt = stmt.where(column == value)
    if params.start_date:
        stmt = stmt.where(list_spec.date_column >= params.start_date.isoformat())
    if params.end_date:
        # Inclusive: every timestamp on the end day sorts before the next day.
        stmt = stmt.where(list_spec.date_column < (params.end_date + timedelta(days=1)).isoformat())
    return stmt


def apply_sort(stmt: Select, params: ListParams, list_spec: ListSpec) -> Select:
    column = list_spec.sortable.get(params.sort_by or "")
    if column is None:
        return stmt.order_by(*list_spec.default_order)
    direction = asc if params.sort_order == "ASC" else desc
    return stmt.order_by(direction(column), *list_spec.default_order)


def paginate(db: Session, stmt: Select, params: ListParams, list_spec: ListSpec) -> dict[str, Any]:
    filtered = apply_filters(stmt, params, list_spec)
    total = db.execute(select(func.count()).select_from(filtered.order_by(None).subquery())).scalar_one()
    page_stmt = apply_sort(filtered, params, list_spec).limit(params.limit).offset(params.offset)
    items = db.execute(page_stmt).unique().scalars().all()
    return {
        "items": items,
        "total": total,
        "page": params.page,
        "limit": params.limit,
        "total_pages": math.ceil(total / params.limit) if total else 0,
    }
