from __future__ import annotations

import json
from typing import Any

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text

from ..core.enums import AssetStatus, UserStatus
from ..db.session import Base


class Inventory(Base):
    """One physical PC or laptop."""

    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(Text, nullable=False, index=True)
    department = Column(Text, nullable=False, index=True)
    pc_name = Column(Text, nullable=True)
    windows_version = Column(Text, nullable=True)
    microsoft_office = Column(Text, nullable=True)
    applications_system = Column(Text, nullable=True)
    pc_type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=AssetStatus.ACTIVE_USER.value, index=True)
    user_status = Column(Text, nullable=False, default=UserStatus.ACTIVE_USER.value)
    remarks = Column(Text, nullable=True)
    serial_number = Column(Text, nullable=True, unique=True)
    brand = Column(Text, nullable=True)
    model = Column(Text, nullable=True)
    purchase_date = Column(Text, nullable=True)
    warranty_expiry = Column(Text, nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_borrowed = Column(Boolean, nullable=False, default=False)
    specifications_blob = Column("specifications", Text, nullable=True)
    created_at = Column(Text, nullable=False, index=True)
    updated_at = Column(Text, nullable=False)

    @property
    def specifications(self) -> dict[str, Any]:
        raw = self.specifications_blob
        if not raw:
            return {}
        try:
            decoded = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return {}
        return decoded if isinstance(decoded, dict) else {}

    @specifications.setter
    def specifications(self, value: dict[str, Any] | None) -> None:
        self.specifications_blob = self.encode_specifications(value)

    @staticmethod
    def encode_specifications(value: dict[str, Any] | None) -> str | None:
        if not value:
            return None
        if not isinstance(value, dict):
            raise ValueError("specifications must be an object")
        return json.dumps(value, sort_keys=True)

    @property
    def equipment_name(self) -> str:
        """Label used in borrower emails, e.g. ``Dell Latitude 5420 (LAPTOP)``."""

        parts = [part for part in (self.brand, self.model) if part]
        label = " ".join(parts) if parts else (self.pc_name or self.full_name)
        return f"{label} ({self.pc_type})"
