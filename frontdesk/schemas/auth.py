"""Pydantic v2 schemas for staff sign-up, sign-in and token refresh."""

import uuid
from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

from frontdesk.auth.passwords import MAX_PASSWORD_BYTES

Role = Literal["admin", "manager", "staff"]

# Accounts are matched case-insensitively; emails are stored lower-cased.
StaffEmail = Annotated[EmailStr, AfterValidator(str.lower)]


def _fits_bcrypt(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


Password = Annotated[str, Field(min_length=8), AfterValidator(_fits_bcrypt)]


class RegisterRequest(BaseModel):
    """Self-registration for desk staff. New accounts always get the ``staff`` role;
    managers and admins are promoted out of band (``scripts/init_db.py``)."""

    email: StaffEmail
    password: Password
    name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: StaffEmail
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    """Bearer token pair; ``expires_in`` is the access token lifetime in seconds."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    is_active: bool
    role: Role
    last_login_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Returned by register and login: the account plus a fresh token pair."""

    user: UserResponse
    tokens: TokenResponse


class ProfileUpdate(BaseModel):
    """Self-service profile edit; omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=100)
    email: StaffEmail | None = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: Password


class MessageResponse(BaseModel):
    message: str
