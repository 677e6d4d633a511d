"""
FastAPI dependencies — auth guards and database session.

Guard chain::

    get_current_user            valid access token, user row exists
    └─ get_current_active_user  account active, allowlist entry active
       └─ get_ready_user        no pending forced password reset
          ├─ require_client
          └─ require_admin
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.core.security import decode_access_token
from tracker.db.session import async_session_factory
from tracker.models.user import User
from tracker.services.accounts import is_session_allowed

# We use auto_error=False so we can manually check for the cookie if header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _credentials_exc() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_token(header_token: str | None, cookie_token: str | None) -> str | None:
    """Priority: Header > Cookie (cookie holds ``Bearer <token>`` or the bare token)."""
    if header_token:
        return header_token
    if cookie_token:
        return cookie_token.removeprefix("Bearer ")
    return None


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # Read from HttpOnly Cookie
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Resolve the caller's user, or ``None`` when there is no usable session."""
    final_token = extract_token(token, access_token)
    if not final_token:
        return None

    payload = decode_access_token(final_token)
    if payload is None or payload.get("sub") is None:
        return None

    try:
        user_id = int(payload["sub"])
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""
    if user is None:
        raise _credentials_exc()
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Reject deactivated/archived accounts and inactive allowlist entries."""
    if not await is_session_allowed(db, current_user):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )
    return current_user


async def get_ready_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Block dashboard access until a forced password reset is done."""
    if current_user.must_reset_password:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password reset required",
        )
    return current_user


async def require_client(
    current_user: User = Depends(get_ready_user),
) -> User:
    """Only client accounts carrying a client id may submit reports."""
    if current_user.is_admin or not current_user.client_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Client account required",
        )
    return current_user


async def require_admin(
    current_user: User = Depends(get_ready_user),
) -> User:
    """Only allow admin role to proceed."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
