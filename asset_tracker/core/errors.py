from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("asset_tracker.errors")


class AssetTrackerError(Exception):
    """Base class for expected business-rule rejections.

    ``kind`` is the coarse taxonomy (not_found, invalid_state, conflict,
    validation_error, dependency_failure); ``code`` is the machine-readable
    reason clients switch on; ``message`` is safe to show to a person.
    """

    kind = "error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, code: str | None = None, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.kind
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "kind": self.kind, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(AssetTrackerError):
    kind = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidStateError(AssetTrackerError):
    kind = "invalid_state"
    http_status = status.HTTP_409_CONFLICT


class ConflictError(AssetTrackerError):
    kind = "conflict"
    http_status = status.HTTP_409_CONFLICT


class DomainValidationError(AssetTrackerError):
    kind = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class DependencyFailure(AssetTrackerError):
    """A best-effort side channel failed. Logged by callers, never returned."""

    kind = "dependency_failure"
    http_status = status.HTTP_502_BAD_GATEWAY


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        kind: str | None = None,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if kind is not None:
            payload["kind"] = kind
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def domain_exception_handler(request: Request, exc: AssetTrackerError):
    return ErrorEnvelope(
        status_code=exc.http_status,
        code=exc.code,
        message=exc.message,
        kind=exc.kind,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.encoders import jsonable_encoder
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            kind="validation_error",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "request.failed",
        exc_info=exc,
        extra={"extra_data": {"method": request.method, "path": request.url.path}},
    )
    return ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        message="Internal server error",
    )
