from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, Text

from ..db.session import Base


class Department(Base):
    """Curated list of department names offered when editing assets.

    ``Inventory.department`` stays free text; nothing is enforced against
    this table.
    """

    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    head_name = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
