"""
Admin endpoints — user lifecycle, client allowlist, access requests,
audit trail, system health and the spreadsheet export.

Every route requires an admin with a completed password reset. Every
mutation writes an audit row in the same transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.v1.deps import get_db, require_admin
from tracker.core.config import settings
from tracker.core.passwords import generate_temporary_password
from tracker.core.security import get_password_hash
from tracker.models.access_request import AccessRequest
from tracker.models.allowlist import AllowlistClient
from tracker.models.audit_log import AdminAuditLog
from tracker.models.submission import Submission
from tracker.models.user import ROLE_CLIENT, User
from tracker.schemas.admin import (AccessRequestApprove, AccessRequestRead,
                                   AllowlistClientCreate, AllowlistClientRead,
                                   AllowlistClientUpdate, AuditLogRead,
                                   DeleteResponse, HealthCheck,
                                   SheetsExportResponse, SystemHealthResponse)
from tracker.schemas.user import (AdminCreateUser, CreateUserResponse,
                                  ManagedUser, ResetPasswordResponse,
                                  RoleUpdate)
from tracker.services.accounts import (derive_status, get_allowlist_entry,
                                       record_audit, upsert_allowlist)
from tracker.services.mailer import Mailer, get_mailer
from tracker.services.sheets import (SheetsExporter, SheetsExportError,
                                     get_sheets_exporter)

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────
async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _not_self(admin: User, user: User, action: str) -> None:
    if admin.id == user.id:
        raise HTTPException(status_code=400, detail=f"You cannot {action} your own account")


def _managed(user: User, entry: AllowlistClient | None) -> ManagedUser:
    active_on_allowlist = entry.active if entry is not None else user.is_admin
    return ManagedUser(
        id=user.id,
        email=user.email,
        role=user.role,
        client_id=user.client_id,
        client_name=user.client_name,
        must_reset_password=user.must_reset_password,
        is_active=user.is_active,
        active_on_allowlist=active_on_allowlist,
        status=derive_status(user, active_on_allowlist),
        last_sign_in_at=user.last_sign_in_at,
        created_at=user.created_at,
        archived_at=user.archived_at,
    )


async def _managed_one(db: AsyncSession, user: User) -> ManagedUser:
    return _managed(user, await get_allowlist_entry(db, user.email))


# ── Users ───────────────────────────────────────────────────────────
@router.get("/users", response_model=list[ManagedUser])
async def list_users(
    include_archived: bool = False,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[ManagedUser]:
    """All accounts with their derived status (archived ones hidden by default)."""
    query = select(User).order_by(User.created_at.desc())
    if not include_archived:
        query = query.where(User.archived_at.is_(None))
    users = list((await db.execute(query)).scalars().all())

    entries_result = await db.execute(
        select(AllowlistClient).where(AllowlistClient.email.in_([u.email for u in users]))
    )
    entries = {e.email: e for e in entries_result.scalars().all()}
    return [_managed(u, entries.get(u.email)) for u in users]


@router.post("/users", response_model=CreateUserResponse, status_code=201)
async def create_user(
    body: AdminCreateUser,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    admin: User = Depends(require_admin),
) -> CreateUserResponse:
    """Create a client account with a temporary password and email it.

    The password is only echoed back when the welcome email could not be sent.
    """
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    password = generate_temporary_password(settings.TEMP_PASSWORD_LENGTH)
    user = User(
        email=body.email,
        hashed_password=get_password_hash(password),
        role=ROLE_CLIENT,
        client_id=body.client_id,
        client_name=body.client_name,
        must_reset_password=True,
        email_confirmed_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await upsert_allowlist(db, body.email, body.client_id, body.client_name, active=True)
    record_audit(
        db, admin, "user.create", body.email,
        client_id=body.client_id, client_name=body.client_name,
    )
    await db.commit()
    await db.refresh(user)

    email_result = await mailer.send_welcome(user.email, body.client_name, password)
    if not email_result.sent:
        logger.warning("Welcome email for %s not sent: %s", user.email, email_result.error)

    return CreateUserResponse(
        user_id=user.id,
        email=user.email,
        client_id=body.client_id,
        client_name=body.client_name,
        email_sent=email_result.sent,
        email_error=email_result.error,
        password=None if email_result.sent else password,
    )


@router.post("/users/{user_id}/reset-password", response_model=ResetPasswordResponse)
async def reset_user_password(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ResetPasswordResponse:
    """Issue a new temporary password and force a change at next login."""
    user = await _get_user(db, user_id)
    if user.archived_at is not None:
        raise HTTPException(status_code=400, detail="Archived users cannot be reset")

    password = generate_temporary_password(settings.TEMP_PASSWORD_LENGTH)
    user.hashed_password = get_password_hash(password)
    user.must_reset_password = True
    record_audit(db, admin, "user.reset_password", user.email)
    await db.commit()

    return ResetPasswordResponse(user_id=user.id, email=user.email, password_cleartext=password)


@router.post("/users/{user_id}/deactivate", response_model=ManagedUser)
async def deactivate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ManagedUser:
    """Block sign-in; the account stays listed."""
    user = await _get_user(db, user_id)
    _not_self(admin, user, "deactivate")

    user.is_active = False
    record_audit(db, admin, "user.deactivate", user.email)
    await db.commit()
    return await _managed_one(db, user)


@router.post("/users/{user_id}/archive", response_model=ManagedUser)
async def archive_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ManagedUser:
    """Deactivate and hide from the user list. Submissions are kept."""
    user = await _get_user(db, user_id)
    _not_self(admin, user, "archive")

    user.is_active = False
    if user.archived_at is None:
        user.archived_at = datetime.now(timezone.utc)
    record_audit(db, admin, "user.archive", user.email)
    await db.commit()
    return await _managed_one(db, user)


@router.patch("/users/{user_id}/role", response_model=ManagedUser)
async def change_user_role(
    user_id: int,
    body: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ManagedUser:
    """Promote a client to admin or demote an admin to client."""
    user = await _get_user(db, user_id)
    _not_self(admin, user, "change the role of")

    if user.role != body.role:
        record_audit(db, admin, "user.role", user.email, from_role=user.role, to_role=body.role)
        user.role = body.role
        await db.commit()
    return await _managed_one(db, user)


# ── Allowlist clients ───────────────────────────────────────────────
async def _get_client(db: AsyncSession, entry_id: int) -> AllowlistClient:
    result = await db.execute(select(AllowlistClient).where(AllowlistClient.id == entry_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        raise HTTPException(status_code=404, detail="Allowlist entry not found")
    return entry


@router.get("/clients", response_model=list[AllowlistClientRead])
async def list_clients(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[AllowlistClient]:
    result = await db.execute(select(AllowlistClient).order_by(AllowlistClient.client_name))
    return list(result.scalars().all())


@router.post("/clients", response_model=AllowlistClientRead, status_code=201)
async def invite_client(
    body: AllowlistClientCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AllowlistClient:
    """Allowlist an email (insert, or update the existing entry)."""
    entry = await upsert_allowlist(db, body.email, body.client_id, body.client_name, body.active)
    record_audit(
        db, admin, "client.invite", body.email,
        client_id=body.client_id, client_name=body.client_name, active=body.active,
    )
    await db.commit()
    await db.refresh(entry)
    return entry


@router.patch("/clients/{entry_id}", response_model=AllowlistClientRead)
async def update_client(
    entry_id: int,
    body: AllowlistClientUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AllowlistClient:
    """Rename an entry or toggle ``active`` (inactive ends the account's sessions)."""
    entry = await _get_client(db, entry_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(entry, field, value.strip() if isinstance(value, str) else value)

    record_audit(db, admin, "client.update", entry.email, **changes)
    await db.commit()
    await db.refresh(entry)
    return entry


@router.delete("/clients/{entry_id}", response_model=DeleteResponse)
async def delete_client(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> DeleteResponse:
    entry = await _get_client(db, entry_id)
    email = entry.email
    await db.delete(entry)
    record_audit(db, admin, "client.delete", email)
    await db.commit()
    return DeleteResponse(success=True, message=f"Allowlist entry '{email}' deleted")


# ── Access requests ─────────────────────────────────────────────────
async def _get_pending_request(db: AsyncSession, request_id: int) -> AccessRequest:
    result = await db.execute(select(AccessRequest).where(AccessRequest.id == request_id))
    access_request = result.scalar_one_or_none()
    if access_request is None:
        raise HTTPException(status_code=404, detail="Access request not found")
    if access_request.status != "pending":
        raise HTTPException(status_code=409, detail="Access request already resolved")
    return access_request


@router.get("/access-requests", response_model=list[AccessRequestRead])
async def list_access_requests(
    status: str = Query(default="pending", pattern="^(pending|approved|denied|all)$"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[AccessRequest]:
    query = select(AccessRequest).order_by(AccessRequest.created_at)
    if status != "all":
        query = query.where(AccessRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("/access-requests/{request_id}/approve", response_model=AccessRequestRead)
async def approve_access_request(
    request_id: int,
    body: AccessRequestApprove | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AccessRequest:
    """Promote the request into an active allowlist entry."""
    access_request = await _get_pending_request(db, request_id)
    body = body or AccessRequestApprove()

    client_id = (body.client_id or access_request.client_id or "").strip()
    if not client_id:
        raise HTTPException(status_code=422, detail="client_id is required to approve this request")
    client_name = (body.client_name or access_request.company).strip()

    await upsert_allowlist(db, access_request.email, client_id, client_name, active=True)
    access_request.status = "approved"
    access_request.resolved_at = datetime.now(timezone.utc)
    record_audit(
        db, admin, "access_request.approve", access_request.email,
        request_id=access_request.id, client_id=client_id, client_name=client_name,
    )
    await db.commit()
    await db.refresh(access_request)
    return access_request


@router.post("/access-requests/{request_id}/deny", response_model=AccessRequestRead)
async def deny_access_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AccessRequest:
    access_request = await _get_pending_request(db, request_id)
    access_request.status = "denied"
    access_request.resolved_at = datetime.now(timezone.utc)
    record_audit(db, admin, "access_request.deny", access_request.email, request_id=access_request.id)
    await db.commit()
    await db.refresh(access_request)
    return access_request


# ── Audit log ───────────────────────────────────────────────────────
@router.get("/audit-logs", response_model=list[AuditLogRead])
async def list_audit_logs(
    action: str | None = None,
    limit: int = Query(default=100, le=1000),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[AdminAuditLog]:
    query = select(AdminAuditLog).order_by(AdminAuditLog.id.desc()).limit(limit)
    if action:
        query = query.where(AdminAuditLog.action == action)
    result = await db.execute(query)
    return list(result.scalars().all())


# ── System health ───────────────────────────────────────────────────
@router.get("/system-health", response_model=SystemHealthResponse)
async def system_health(
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    sheets: SheetsExporter = Depends(get_sheets_exporter),
    _admin: User = Depends(require_admin),
) -> SystemHealthResponse:
    """Report which pieces of configuration are present and working."""
    health: dict[str, HealthCheck] = {}

    if settings.SITE_URL:
        health["site_url"] = HealthCheck(status="ok", message=f"Configured: {settings.SITE_URL}")
    else:
        health["site_url"] = HealthCheck(
            status="warn",
            message="SITE_URL is not set. Links in emails may not work.",
        )

    try:
        await db.execute(select(1))
        health["database"] = HealthCheck(status="ok", message="Database reachable.")
    except SQLAlchemyError as e:
        logger.error("System health DB failure: %s", e)
        health["database"] = HealthCheck(status="error", message="Database unreachable.")

    health["smtp"] = (
        HealthCheck(status="ok", message="Email API key is configured.")
        if mailer.configured
        else HealthCheck(status="warn", message="RESEND_API_KEY is not set. Emails will not be sent.")
    )
    health["sheets"] = (
        HealthCheck(status="ok", message="Google Sheets export is configured.")
        if sheets.configured
        else HealthCheck(status="warn", message="Google Sheets variables are incomplete. Export is disabled.")
    )

    return SystemHealthResponse(
        ok=all(check.status != "error" for check in health.values()),
        health=health,
    )


# ── Spreadsheet export ──────────────────────────────────────────────
@router.post("/export/sheets", response_model=SheetsExportResponse)
async def export_to_sheets(
    db: AsyncSession = Depends(get_db),
    sheets: SheetsExporter = Depends(get_sheets_exporter),
    admin: User = Depends(require_admin),
) -> SheetsExportResponse:
    """Append every submission as a row of the configured sheet tab."""
    result = await db.execute(select(Submission).order_by(Submission.created_at.asc()))
    submissions = list(result.scalars().all())
    if not submissions:
        return SheetsExportResponse(appended=0, message="No submissions to export.")

    rows = [
        [
            s.date,
            s.client_id,
            s.user_email or str(s.user_id),
            s.weight_kg,
            s.status,
            " ".join(p.url for p in s.photos),
            s.notes or "",
            s.id,
        ]
        for s in submissions
    ]
    try:
        appended = await sheets.append_rows(rows)
    except SheetsExportError as e:
        logger.error("Sheets export failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    record_audit(db, admin, "export.sheets", appended=appended)
    await db.commit()
    return SheetsExportResponse(appended=appended)
