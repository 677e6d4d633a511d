"""Pydantic schemas for allowlist, access requests, audit log and health."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_validator

from tracker.schemas.user import normalise_email


# ── Allowlist ───────────────────────────────────────────────────────
class AllowlistClientCreate(BaseModel):
    email: str
    client_id: str
    client_name: str
    active: bool = True

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


class AllowlistClientUpdate(BaseModel):
    client_id: str | None = None
    client_name: str | None = None
    active: bool | None = None


class AllowlistClientRead(BaseModel):
    id: int
    email: str
    client_id: str
    client_name: str
    active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


# ── Access requests ─────────────────────────────────────────────────
class AccessRequestCreate(BaseModel):
    email: str
    company: str
    client_id: str | None = None
    note: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("company")
    @classmethod
    def _company(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Company must not be empty")
        if len(v) > 200:
            raise ValueError("Company must not exceed 200 characters")
        return v

    @field_validator("note")
    @classmethod
    def _note(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 2000:
            raise ValueError("Note must not exceed 2000 characters")
        return v


class AccessRequestRead(BaseModel):
    id: int
    email: str
    company: str
    client_id: str | None
    note: str | None
    status: Literal["pending", "approved", "denied"]
    created_at: datetime | None
    resolved_at: datetime | None

    model_config = {"from_attributes": True}


class AccessRequestApprove(BaseModel):
    client_id: str | None = None
    client_name: str | None = None


# ── Audit log ───────────────────────────────────────────────────────
class AuditLogRead(BaseModel):
    id: int
    actor_user_id: int
    action: str
    target_email: str | None
    payload: dict
    created_at: datetime | None

    model_config = {"from_attributes": True}


# ── Health / export ─────────────────────────────────────────────────
class HealthCheck(BaseModel):
    status: Literal["ok", "warn", "error"]
    message: str


class SystemHealthResponse(BaseModel):
    ok: bool = True
    health: dict[str, HealthCheck]


class HealthResponse(BaseModel):
    db: bool


class SheetsExportResponse(BaseModel):
    ok: bool = True
    appended: int
    message: str | None = None


class DeleteResponse(BaseModel):
    success: bool
    message: str
