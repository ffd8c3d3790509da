from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .borrow import BorrowOut
from .inventory import InventoryOut


class DashboardOut(BaseModel):
    inventory: dict[str, int]
    pc_types: dict[str, int]
    borrows: dict[str, int]
    recent_activity: list[BorrowOut] = Field(default_factory=list)


class InventoryReportOut(BaseModel):
    summary: dict[str, Any]
    items: list[InventoryOut]
    generated_at: str


class BorrowReportOut(BaseModel):
    summary: dict[str, Any]
    records: list[BorrowOut]
    generated_at: str


class DepartmentReportOut(BaseModel):
    departments: list[dict[str, Any]]
    generated_at: str


class InventoryActivity(BaseModel):
    count: int
    items: list[InventoryOut]


class BorrowActivity(BaseModel):
    count: int
    items: list[BorrowOut]


class ActivityReportOut(BaseModel):
    period: str
    recent_additions: InventoryActivity
    recent_borrows: BorrowActivity
    recent_returns: BorrowActivity
    generated_at: str
