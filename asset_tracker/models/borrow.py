from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import relationship

from ..core.enums import BorrowStatus
from ..db.session import Base

ACTIVE_BORROW_PREDICATE = "status IN ('Borrowed', 'Extended', 'Overdue')"


class BorrowRecord(Base):
    __tablename__ = "borrow_records"
    __table_args__ = (
        # At most one active borrow per asset, enforced by the store as well.
        Index(
            "uq_borrow_records_active_inventory",
            "inventory_id",
            unique=True,
            sqlite_where=text(ACTIVE_BORROW_PREDICATE),
            postgresql_where=text(ACTIVE_BORROW_PREDICATE),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Nullable so history survives deletion of the asset.
    inventory_id = Column(Integer, ForeignKey("inventory.id", ondelete="SET NULL"), nullable=True, index=True)
    borrower_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    borrower_name = Column(Text, nullable=False)
    borrower_email = Column(Text, nullable=True)
    borrower_department = Column(Text, nullable=True)
    borrow_date = Column(Text, nullable=False, index=True)
    expected_return_date = Column(Text, nullable=False, index=True)
    actual_return_date = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default=BorrowStatus.BORROWED.value, index=True)
    purpose = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    return_condition = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    return_processed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(Text, nullable=False, index=True)
    updated_at = Column(Text, nullable=False)

    inventory = relationship("Inventory", lazy="joined")

    @property
    def is_active(self) -> bool:
        return self.status != BorrowStatus.RETURNED.value
