from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..core.enums import Role
from .common import CommandModel, check_email


class UserCreate(CommandModel):
    username: str = Field(min_length=3, max_length=50)
    email: str
    password: str = Field(min_length=6)
    full_name: str
    role: Role = Role.USER
    department: Optional[str] = None
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return check_email(value)


class RegisterRequest(CommandModel):
    username: str = Field(min_length=3, max_length=50)
    email: str
    password: str = Field(min_length=6)
    full_name: str
    department: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return check_email(value)


class UserUpdate(CommandModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    full_name: Optional[str] = None
    role: Optional[Role] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return check_email(value)


class ProfileUpdate(CommandModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    department: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return check_email(value)


class PasswordChange(CommandModel):
    current_password: str
    new_password: str = Field(min_length=6)


class LoginRequest(CommandModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    full_name: str
    role: str
    department: Optional[str] = None
    is_active: bool
    last_login: Optional[str] = None
    created_at: str

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut
