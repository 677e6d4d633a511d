"""Pydantic schemas for users and admin user management."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_validator

_VALID_ROLES = {"admin", "client"}
# Older clients send "user" for the client role.
_ROLE_ALIASES = {"user": "client"}


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@") or len(v) > 320:
        raise ValueError("Invalid email address")
    return v


def normalise_role(v: str) -> str:
    v = _ROLE_ALIASES.get(v.strip().lower(), v.strip().lower())
    if v not in _VALID_ROLES:
        raise ValueError(f"Role must be one of: {sorted(_VALID_ROLES)}")
    return v


class SessionUser(BaseModel):
    """The profile the client layer routes on."""

    id: int
    email: str
    role: str
    client_id: str | None
    client_name: str | None
    must_reset_password: bool

    model_config = {"from_attributes": True}


UserStatus = Literal["ACTIVE", "INACTIVE", "PENDING_RESET", "CONFIRMATION_SENT"]


class ManagedUser(SessionUser):
    is_active: bool
    active_on_allowlist: bool
    status: UserStatus
    last_sign_in_at: datetime | None
    created_at: datetime | None
    archived_at: datetime | None


class AdminCreateUser(BaseModel):
    email: str
    client_id: str
    client_name: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("client_id", "client_name")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be empty")
        return v


class CreateUserResponse(BaseModel):
    ok: bool = True
    user_id: int
    email: str
    client_id: str
    client_name: str
    email_sent: bool
    email_error: str | None = None
    # Only returned when the welcome email could not be delivered.
    password: str | None = None


class ResetPasswordResponse(BaseModel):
    user_id: int
    email: str
    password_cleartext: str


class RoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        return normalise_role(v)
