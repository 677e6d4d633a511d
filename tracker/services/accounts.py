"""
Account helpers shared by the auth and admin endpoints: allowlist lookups,
session validity, derived user status and the admin audit trail.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.models.allowlist import AllowlistClient
from tracker.models.audit_log import AdminAuditLog
from tracker.models.user import User

logger = logging.getLogger(__name__)


async def get_allowlist_entry(db: AsyncSession, email: str) -> AllowlistClient | None:
    result = await db.execute(
        select(AllowlistClient).where(AllowlistClient.email == email.lower())
    )
    return result.scalar_one_or_none()


def session_allowed(user: User, entry: AllowlistClient | None) -> bool:
    """Can *user* keep a session given their allowlist entry?

    Clients need an active entry. Admins without an entry pass; an admin
    whose entry exists but is inactive is blocked like anyone else.
    """
    if not user.is_active or user.archived_at is not None:
        return False
    if entry is None:
        return user.is_admin
    return entry.active


async def is_session_allowed(db: AsyncSession, user: User) -> bool:
    return session_allowed(user, await get_allowlist_entry(db, user.email))


async def upsert_allowlist(
    db: AsyncSession,
    email: str,
    client_id: str,
    client_name: str,
    active: bool = True,
) -> AllowlistClient:
    """Insert or update the allowlist entry for *email* (no commit)."""
    entry = await get_allowlist_entry(db, email)
    if entry is None:
        entry = AllowlistClient(email=email.lower())
        db.add(entry)
    entry.client_id = client_id
    entry.client_name = client_name
    entry.active = active
    return entry


def derive_status(user: User, active_on_allowlist: bool) -> str:
    if not user.is_active or user.archived_at is not None or not active_on_allowlist:
        return "INACTIVE"
    if user.must_reset_password:
        return "PENDING_RESET"
    if user.email_confirmed_at is None:
        return "CONFIRMATION_SENT"
    return "ACTIVE"


def record_audit(
    db: AsyncSession,
    actor: User,
    action: str,
    target_email: str | None = None,
    **payload: object,
) -> AdminAuditLog:
    """Stage an audit row in the caller's transaction."""
    log = AdminAuditLog(
        actor_user_id=actor.id,
        action=action,
        target_email=target_email,
        payload=payload,
    )
    db.add(log)
    logger.info("Admin %s: %s %s", actor.email, action, target_email or "")
    return log
