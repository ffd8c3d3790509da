from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..core.enums import AssetStatus, OfficeVersion, PcType, UserStatus, WindowsVersion
from .common import CommandModel


class InventoryFields(CommandModel):
    pc_name: Optional[str] = None
    windows_version: Optional[WindowsVersion] = None
    microsoft_office: Optional[OfficeVersion] = None
    applications_system: Optional[str] = None
    remarks: Optional[str] = None
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    purchase_date: Optional[date] = None
    warranty_expiry: Optional[date] = None
    assigned_to: Optional[int] = None
    specifications: Optional[dict[str, Any]] = None


class InventoryCreate(InventoryFields):
    full_name: str
    department: str
    pc_type: PcType
    status: AssetStatus = AssetStatus.ACTIVE_USER
    user_status: UserStatus = UserStatus.ACTIVE_USER


class InventoryUpdate(InventoryFields):
    full_name: Optional[str] = None
    department: Optional[str] = None
    pc_type: Optional[PcType] = None
    status: Optional[AssetStatus] = None
    user_status: Optional[UserStatus] = None


class InventoryBrief(BaseModel):
    id: int
    full_name: str
    department: str
    pc_name: Optional[str] = None
    pc_type: str
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    status: str
    is_borrowed: bool

    class Config:
        from_attributes = True


class InventoryOut(InventoryBrief):
    windows_version: Optional[str] = None
    microsoft_office: Optional[str] = None
    applications_system: Optional[str] = None
    user_status: str
    remarks: Optional[str] = None
    purchase_date: Optional[str] = None
    warranty_expiry: Optional[str] = None
    assigned_to: Optional[int] = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class BulkImportRequest(BaseModel):
    items: list[dict[str, Any]] = Field(min_length=1)


class BulkImportError(BaseModel):
    index: int
    item: dict[str, Any]
    error: str


class BulkImportResult(BaseModel):
    success: int
    failed: int
    errors: list[BulkImportError] = Field(default_factory=list)
