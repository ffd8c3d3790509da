from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, Text

from ..core.enums import Role
from ..db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(Text, nullable=False, unique=True, index=True)
    email = Column(Text, nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    full_name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default=Role.USER.value)
    department = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN.value, Role.MANAGER.value)
