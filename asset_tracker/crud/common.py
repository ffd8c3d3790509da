from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from ..core.errors import DomainValidationError


def to_storage(values: dict[str, Any]) -> dict[str, Any]:
    """Convert command values to the text forms the tables store."""

    stored: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        stored[key] = value
    return stored


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(segment) for segment in error.get("loc", ()) if segment != "__root__")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid payload"



def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the rejected write hit a unique index (SQLite or PostgreSQL wording)."""

    message = str(exc.orig).lower()
    return "unique" in message or "duplicate key" in message


def integrity_failure(exc: IntegrityError) -> DomainValidationError:
    return DomainValidationError(
        "The record references data that does not exist",
        code="invalid_reference",
        details={"error": str(exc.orig)},
    )
