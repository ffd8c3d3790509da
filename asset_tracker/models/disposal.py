from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import relationship

from ..core.enums import DisposalStatus
from ..db.session import Base

OPEN_DISPOSAL_PREDICATE = "status IN ('Pending', 'Approved')"


class Disposal(Base):
    __tablename__ = "disposals"
    __table_args__ = (
        Index(
            "uq_disposals_open_inventory",
            "inventory_id",
            unique=True,
            sqlite_where=text(OPEN_DISPOSAL_PREDICATE),
            postgresql_where=text(OPEN_DISPOSAL_PREDICATE),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    inventory_id = Column(Integer, ForeignKey("inventory.id", ondelete="SET NULL"), nullable=True, index=True)
    disposal_date = Column(Text, nullable=False, index=True)
    disposal_method = Column(Text, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=DisposalStatus.PENDING.value, index=True)
    sale_price = Column(Float, nullable=True)
    recipient_name = Column(Text, nullable=True)
    recipient_contact = Column(Text, nullable=True)
    certificate_number = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    requested_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    disposed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    completed_at = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False, index=True)
    updated_at = Column(Text, nullable=False)

    inventory = relationship("Inventory", lazy="joined")
