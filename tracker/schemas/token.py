"""Pydantic schemas for JWT tokens, sessions and the account lifecycle."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, field_validator

from tracker.core.session_gate import View
from tracker.schemas.user import SessionUser, normalise_email


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    user: SessionUser
    view: View


class RefreshRequest(BaseModel):
    refresh_token: str


class SessionState(BaseModel):
    authenticated: bool
    view: View
    user: SessionUser | None = None


class SignupRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)


class SignupResponse(BaseModel):
    status: Literal["PENDING_REVIEW", "CONFIRMATION_SENT", "CREATED"]


class EmailRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()


class TokenRequest(BaseModel):
    access_token: str


class PasswordUpdate(BaseModel):
    password: str


class RecoverPassword(BaseModel):
    access_token: str
    password: str


class ForceResetResponse(BaseModel):
    user: SessionUser
    view: View


class MessageResponse(BaseModel):
    success: bool = True
    message: str
