from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..core.enums import Role
from ..core.security import decode_token, issue_token_pair
from ..crud.users import (
    authenticate,
    change_password,
    create_user,
    delete_user,
    list_users,
    require_user,
    update_user,
)
from ..db.session import get_db
from ..deps.auth import get_current_user, require_roles
from ..models.user import User
from ..schemas.auth import RefreshRequest, TokenResponse
from ..schemas.common import Page, StatusMessage
from ..schemas.user import (
    LoginRequest,
    LoginResponse,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    UserCreate,
    UserOut,
    UserUpdate,
)
from .params import PageQuery

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

require_admin = require_roles(Role.ADMIN.value)


def _tokens_for(user: User):
    return issue_token_pair(subject=str(user.id), scope=user.role)


@router.post("/login", response_model=LoginResponse, summary="Exchange credentials for JWTs")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.username, payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    pair = _tokens_for(user)
    return LoginResponse(**pair.model_dump(), user=UserOut.model_validate(user))


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        claims = decode_token(payload.refresh_token, verify_type="refresh")
        user_id = int(claims.sub)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    # Role or activation may have changed since the refresh token was issued.
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return TokenResponse(**_tokens_for(user).model_dump())


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    return create_user(db, {**payload.model_dump(), "role": Role.USER.value})


@router.get("/profile", response_model=UserOut)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserOut)
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return update_user(db, user, payload.changes())


@router.put("/change-password", response_model=StatusMessage)
def api_change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    change_password(db, user, payload.current_password, payload.new_password)
    return StatusMessage(status="ok", message="Password changed")


@router.get("/users", response_model=Page[UserOut], dependencies=[Depends(require_admin)])
def api_list_users(
    paging: PageQuery = Depends(),
    role: Optional[str] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_users(db, paging.to_params(role=role, department=department))


@router.get("/users/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def api_get_user(user_id: int, db: Session = Depends(get_db)):
    return require_user(db, user_id)


@router.post(
    "/users",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def api_create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return create_user(db, payload.model_dump())


@router.put("/users/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def api_update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    return update_user(db, require_user(db, user_id), payload.changes())


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_user(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if admin.id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
