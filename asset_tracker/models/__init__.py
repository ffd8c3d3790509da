"""Importing this package registers every table with ``Base.metadata``."""

from .borrow import BorrowRecord
from .department import Department
from .disposal import Disposal
from .inventory import Inventory
from .user import User

__all__ = ["BorrowRecord", "Department", "Disposal", "Inventory", "User"]
