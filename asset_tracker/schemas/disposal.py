from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ..core.enums import RECIPIENT_METHODS, SALE_METHODS, DisposalMethod
from .common import CommandModel
from .inventory import InventoryBrief


def clear_conditional_fields(values: dict, method: Optional[str]) -> dict:
    """Drop sale/recipient details that do not apply to ``method``."""

    if method is None:
        return values
    if method not in SALE_METHODS:
        values["sale_price"] = None
    if method not in RECIPIENT_METHODS:
        values["recipient_name"] = None
        values["recipient_contact"] = None
    return values


class DisposalCreate(CommandModel):
    inventory_id: int
    disposal_date: date
    disposal_method: DisposalMethod
    reason: str
    sale_price: Optional[float] = Field(default=None, ge=0)
    recipient_name: Optional[str] = None
    recipient_contact: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def drop_inapplicable_fields(self) -> "DisposalCreate":
        cleaned = clear_conditional_fields(
            {
                "sale_price": self.sale_price,
                "recipient_name": self.recipient_name,
                "recipient_contact": self.recipient_contact,
            },
            self.disposal_method,
        )
        self.sale_price = cleaned["sale_price"]
        self.recipient_name = cleaned["recipient_name"]
        self.recipient_contact = cleaned["recipient_contact"]
        return self


class DisposalUpdate(CommandModel):
    disposal_date: Optional[date] = None
    disposal_method: Optional[DisposalMethod] = None
    reason: Optional[str] = None
    sale_price: Optional[float] = Field(default=None, ge=0)
    recipient_name: Optional[str] = None
    recipient_contact: Optional[str] = None
    notes: Optional[str] = None


class DisposalComplete(CommandModel):
    certificate_number: Optional[str] = None
    notes: Optional[str] = None


class DisposalCancel(CommandModel):
    notes: Optional[str] = None


class DisposalOut(BaseModel):
    id: int
    inventory_id: Optional[int] = None
    disposal_date: str
    disposal_method: str
    reason: str
    status: str
    sale_price: Optional[float] = None
    recipient_name: Optional[str] = None
    recipient_contact: Optional[str] = None
    certificate_number: Optional[str] = None
    notes: Optional[str] = None
    requested_by_id: Optional[int] = None
    approved_by_id: Optional[int] = None
    disposed_by_id: Optional[int] = None
    completed_at: Optional[str] = None
    created_at: str
    updated_at: str
    inventory: Optional[InventoryBrief] = None

    class Config:
        from_attributes = True
