from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core.enums import ReturnCondition
from .common import CommandModel, check_email
from .inventory import InventoryBrief, InventoryOut


class BorrowCreate(CommandModel):
    inventory_id: int
    borrower_id: Optional[int] = None
    borrower_name: str
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    borrow_date: Optional[date] = None
    expected_return_date: date
    purpose: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("borrower_email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return check_email(value)

    @model_validator(mode="after")
    def validate_dates(self) -> "BorrowCreate":
        if self.borrow_date and self.expected_return_date < self.borrow_date:
            raise ValueError("expected_return_date cannot be before borrow_date")
        return self


class BorrowReturn(CommandModel):
    return_condition: ReturnCondition = ReturnCondition.GOOD
    notes: Optional[str] = None


class BorrowExtend(CommandModel):
    new_expected_return_date: date
    reason: Optional[str] = None


class BorrowOut(BaseModel):
    id: int
    inventory_id: Optional[int] = None
    borrower_id: Optional[int] = None
    borrower_name: str
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    borrow_date: str
    expected_return_date: str
    actual_return_date: Optional[str] = None
    status: str
    purpose: Optional[str] = None
    notes: Optional[str] = None
    return_condition: Optional[str] = None
    approved_by: Optional[int] = None
    return_processed_by: Optional[int] = None
    created_at: str
    updated_at: str
    inventory: Optional[InventoryBrief] = None

    class Config:
        from_attributes = True


class SweepResult(BaseModel):
    as_of: str
    updated: int


class ReminderResult(BaseModel):
    total_records: int
    emails_sent: int


class InventoryDetail(InventoryOut):
    borrow_records: list[BorrowOut] = Field(default_factory=list)
