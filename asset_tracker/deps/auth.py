from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session

from ..core.security import decode_token
from ..db.session import get_db
from ..middlewares import principal_ctx_var
from ..models.user import User


def _unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer access token to an active user."""

    if not authorization:
        raise _unauthorized("Authorization required")
    scheme, credentials = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not credentials:
        raise _unauthorized("Bearer token required")
    try:
        payload = decode_token(credentials, verify_type="access")
    except ValueError as exc:
        raise _unauthorized(str(exc)) from exc
    try:
        user_id = int(payload.sub)
    except ValueError as exc:
        raise _unauthorized("Invalid token subject") from exc
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")
    _set_principal(request, f"user:{user.id}")
    request.state.token_payload = payload
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Dependency factory admitting only users whose role is in ``roles``."""

    allowed = frozenset(roles)

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return dependency
