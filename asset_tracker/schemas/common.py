"""Shared pieces for request and response schemas.

Every write payload is parsed into a ``CommandModel`` exactly once. The base
class owns the normalization rules that apply to all entities: strings are
trimmed, blank strings count as "not provided", and enum fields only accept
their literal values. Entity schemas add the field-specific rules on top.
"""

from __future__ import annotations

import re
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

T = TypeVar("T")


def _normalize(key: str, value: Any) -> Any:
    if isinstance(value, str) and "password" not in key.lower():
        cleaned = value.strip()
        return cleaned or None
    return value


class CommandModel(BaseModel):
    """Base for every inbound payload. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: _normalize(str(key), value) for key, value in data.items()}
        return data

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually sent, for partial updates."""

        return self.model_dump(exclude_unset=True)


def check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email address")
    return value.lower()


class Page(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    total_pages: int


class StatusMessage(BaseModel):
    status: str
    message: Optional[str] = None
