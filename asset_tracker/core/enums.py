"""Enumerated literals shared by models, schemas and the lifecycle services.

Every value is persisted as its literal string so rows stay self-describing.
"""

from __future__ import annotations

import enum


class AssetStatus(str, enum.Enum):
    ACTIVE_USER = "Active User"
    TRANSFER = "Transfer"
    FOR_UPGRADE = "For Upgrade"
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    RETIRED = "Retired"


class UserStatus(str, enum.Enum):
    ACTIVE_USER = "Active User"
    INACTIVE = "Inactive"
    ON_LEAVE = "On Leave"


class PcType(str, enum.Enum):
    LAPTOP = "LAPTOP"
    DESKTOP = "DESKTOP"
    LAPTOP_DESKTOP = "LAPTOP DESKTOP"


class WindowsVersion(str, enum.Enum):
    WINDOWS_10 = "Windows 10"
    WINDOWS_11 = "Windows 11"
    WINDOWS_SERVER = "Windows Server"


class OfficeVersion(str, enum.Enum):
    OFFICE_365 = "Office 365"
    OFFICE_LTSC = "Office LTSC"
    OFFICE_2021 = "Office 2021"
    OFFICE_2019 = "Office 2019"
    NONE = "None"


class BorrowStatus(str, enum.Enum):
    BORROWED = "Borrowed"
    EXTENDED = "Extended"
    OVERDUE = "Overdue"
    RETURNED = "Returned"


class ReturnCondition(str, enum.Enum):
    GOOD = "Good"
    DAMAGED = "Damaged"
    LOST = "Lost"


class DisposalMethod(str, enum.Enum):
    SOLD = "Sold"
    DONATED = "Donated"
    RECYCLED = "Recycled"
    SCRAPPED = "Scrapped"
    TRADE_IN = "Trade-In"
    OTHER = "Other"


class DisposalStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Role(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


# A borrow in any of these states holds the asset.
ACTIVE_BORROW_STATUSES = (
    BorrowStatus.BORROWED.value,
    BorrowStatus.EXTENDED.value,
    BorrowStatus.OVERDUE.value,
)
# Only these may be promoted to Overdue by the sweep.
SWEEPABLE_BORROW_STATUSES = (BorrowStatus.BORROWED.value, BorrowStatus.EXTENDED.value)

OPEN_DISPOSAL_STATUSES = (DisposalStatus.PENDING.value, DisposalStatus.APPROVED.value)
DELETABLE_DISPOSAL_STATUSES = (DisposalStatus.PENDING.value, DisposalStatus.CANCELLED.value)

SALE_METHODS = (DisposalMethod.SOLD.value, DisposalMethod.TRADE_IN.value)
RECIPIENT_METHODS = (DisposalMethod.SOLD.value, DisposalMethod.DONATED.value)

STAFF_ROLES = (Role.ADMIN.value, Role.MANAGER.value)


def values(enum_cls: type[enum.Enum]) -> tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


__all__ = [
    "ACTIVE_BORROW_STATUSES",
    "AssetStatus",
    "BorrowStatus",
    "DELETABLE_DISPOSAL_STATUSES",
    "DisposalMethod",
    "DisposalStatus",
    "OPEN_DISPOSAL_STATUSES",
    "OfficeVersion",
    "PcType",
    "RECIPIENT_METHODS",
    "ReturnCondition",
    "Role",
    "SALE_METHODS",
    "STAFF_ROLES",
    "SWEEPABLE_BORROW_STATUSES",
    "UserStatus",
    "WindowsVersion",
    "values",
]
