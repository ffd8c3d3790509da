"""Query-string plumbing shared by list endpoints."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import Query

from ..crud.filters import ListParams


class PageQuery:
    """Common paging/search/sort parameters, camelCase or snake_case."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=500),
        search: Optional[str] = None,
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: str = Query("DESC", alias="sortOrder"),
    ) -> None:
        self.page = page
        self.limit = limit
        self.search = search
        self.start_date = start_date
        self.end_date = end_date
        self.sort_by = sort_by
        self.sort_order = sort_order

    def to_params(self, **filters) -> ListParams:
        return ListParams(
            page=self.page,
            limit=self.limit,
            search=self.search,
            start_date=self.start_date,
            end_date=self.end_date,
            sort_by=_snake(self.sort_by),
            sort_order=self.sort_order,
            filters=filters,
        )


def _snake(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    out = []
    for char in name:
        if char.isupper():
            out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out)
