from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .common import CommandModel


class DepartmentCreate(CommandModel):
    name: str
    description: Optional[str] = None
    head_name: Optional[str] = None
    is_active: bool = True


class DepartmentUpdate(CommandModel):
    name: Optional[str] = None
    description: Optional[str] = None
    head_name: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    head_name: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True
