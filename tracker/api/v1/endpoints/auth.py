"""
Auth endpoints — signup gate, login (OAuth2 password flow), sessions and
the password lifecycle (recovery links, forced resets).
"""

import logging
from datetime import datetime, timezone

from fastapi import (APIRouter, Cookie, Depends, HTTPException, Request,
                     Response, status)
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.v1.deps import (get_current_active_user, get_db,
                                 get_optional_user)
from tracker.core.config import settings
from tracker.core.passwords import validate_password
from tracker.core.rate_limit import limiter
from tracker.core.security import (TOKEN_RECOVERY, TOKEN_SIGNUP,
                                   create_access_token,
                                   create_confirmation_token,
                                   create_recovery_token,
                                   create_refresh_token, decode_refresh_token,
                                   decode_token, get_password_hash,
                                   recovery_token_matches, verify_password)
from tracker.core.session_gate import View, resolve_view
from tracker.models.user import ROLE_CLIENT, User
from tracker.schemas.token import (EmailRequest, ForceResetResponse,
                                   LoginResponse, MessageResponse,
                                   PasswordUpdate, RecoverPassword,
                                   RefreshRequest, SessionState,
                                   SignupRequest, SignupResponse, Token,
                                   TokenRequest)
from tracker.schemas.user import SessionUser
from tracker.services.accounts import get_allowlist_entry, is_session_allowed
from tracker.services.mailer import Mailer, get_mailer

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If the account exists, a password reset link has been sent."


# ── Helpers ─────────────────────────────────────────────────────────
def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,  # Set to True in HTTPS production
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _clear_auth_cookies(response: Response) -> None:
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")


def _check_policy(password: str, *, require_symbol: bool = False) -> None:
    failed = validate_password(password, require_symbol=require_symbol)
    if failed:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Password does not meet requirements: {', '.join(failed)}",
        )


async def _user_by_id(db: AsyncSession, user_id: str | None) -> User | None:
    if user_id is None or not str(user_id).isdigit():
        return None
    result = await db.execute(select(User).where(User.id == int(user_id)))
    return result.scalar_one_or_none()


# ── Signup ──────────────────────────────────────────────────────────
@router.post("/signup", response_model=SignupResponse)
@limiter.limit("10/minute")
async def signup(
    request: Request,
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> SignupResponse:
    """Self-registration, gated by the allowlist.

    Emails without an active allowlist entry are parked as pending review and
    no account is created.
    """
    entry = await get_allowlist_entry(db, body.email)
    if entry is None or not entry.active:
        logger.info("Signup for %s deferred to review (no active allowlist entry)", body.email)
        return SignupResponse(status="PENDING_REVIEW")

    _check_policy(body.password)

    confirmed = not settings.REQUIRE_EMAIL_CONFIRMATION
    done = SignupResponse(status="CREATED" if confirmed else "CONFIRMATION_SENT")

    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none() is not None:
        # Same answer as a fresh signup so the endpoint cannot be used to enumerate accounts.
        logger.info("Signup for already-registered email %s ignored", body.email)
        return done

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        role=ROLE_CLIENT,
        client_id=entry.client_id,
        client_name=entry.client_name,
        email_confirmed_at=datetime.now(timezone.utc) if confirmed else None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created client account %s for %s", user.email, user.client_id)

    if not confirmed:
        result = await mailer.send_confirmation(user.email, create_confirmation_token(user.id))
        if not result.sent:
            logger.error("Confirmation email to %s not sent: %s", user.email, result.error)
    return done


@router.post("/confirm", response_model=MessageResponse)
async def confirm_email(
    body: TokenRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Confirm an email address from a ``type=signup`` link."""
    payload = decode_token(body.access_token, TOKEN_SIGNUP)
    user = await _user_by_id(db, payload.get("sub")) if payload else None
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired confirmation link")

    if user.email_confirmed_at is None:
        user.email_confirmed_at = datetime.now(timezone.utc)
        await db.commit()
        logger.info("Email confirmed for %s", user.email)
    return MessageResponse(message="Email confirmed")


# ── Login / session ─────────────────────────────────────────────────
@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Authenticate with user/pass. Returns 200 OK with HttpOnly Cookies."""
    result = await db.execute(
        select(User).where(User.email == form_data.username.lower().strip())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active or user.archived_at is not None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    if settings.REQUIRE_EMAIL_CONFIRMATION and user.email_confirmed_at is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email address not confirmed",
        )
    if not await is_session_allowed(db, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is currently disabled. Please contact support.",
        )

    user.last_sign_in_at = datetime.now(timezone.utc)
    await db.commit()

    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)
    _set_auth_cookies(response, access_token, refresh_token)
    logger.info("Login: %s", user.email)

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=SessionUser.model_validate(user),
        view=resolve_view(user).view,
    )


@router.get("/session", response_model=SessionState)
async def read_session(
    response: Response,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> SessionState:
    """Recompute the landing view for the current session."""
    if user is None:
        return SessionState(authenticated=False, view=View.LOGIN)

    decision = resolve_view(user, allowlist_active=await is_session_allowed(db, user))
    if decision.logout:
        _clear_auth_cookies(response)
        logger.info("Session for %s ended: account or allowlist entry inactive", user.email)
        return SessionState(authenticated=False, view=decision.view)

    return SessionState(
        authenticated=True,
        view=decision.view,
        user=SessionUser.model_validate(user),
    )


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    response: Response,
    request: Request,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Token:
    # Priority: Body > Cookie
    token_str = None
    if body and body.refresh_token:
        token_str = body.refresh_token
    elif refresh_token_cookie:
        token_str = refresh_token_cookie

    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    payload = decode_refresh_token(token_str)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = await _user_by_id(db, payload.get("sub"))
    if user is None or not await is_session_allowed(db, user):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    new_access = create_access_token(user.id)
    new_refresh = create_refresh_token(user.id)
    _set_auth_cookies(response, new_access, new_refresh)
    return Token(access_token=new_access, refresh_token=new_refresh)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookies and end the session."""
    _clear_auth_cookies(response)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=SessionUser)
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user


# ── Passwords ───────────────────────────────────────────────────────
@router.post(
    "/password/forgot",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit("5/minute")
async def request_password_reset(
    request: Request,
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Email a recovery link. The answer is identical whether or not the account exists."""
    try:
        result = await db.execute(select(User).where(User.email == body.email))
        user = result.scalar_one_or_none()
        if user is None or not user.is_active or user.archived_at is not None:
            logger.info("Password reset requested for unknown or inactive account")
        else:
            token = create_recovery_token(user.id, user.hashed_password)
            sent = await mailer.send_recovery(user.email, token)
            if not sent.sent:
                logger.error("Recovery email to %s not sent: %s", user.email, sent.error)
    except Exception as e:
        logger.exception("Password reset request failed: %s", e)

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/password/recover", response_model=MessageResponse)
async def recover_password(
    body: RecoverPassword,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Set a new password from a recovery link token."""
    payload = decode_token(body.access_token, TOKEN_RECOVERY)
    user = await _user_by_id(db, payload.get("sub")) if payload else None
    if user is None or not user.is_active or user.archived_at is not None:
        raise HTTPException(status_code=400, detail="Invalid or expired recovery link")
    if not recovery_token_matches(payload, user.hashed_password):
        raise HTTPException(status_code=400, detail="Recovery link already used")

    _check_policy(body.password, require_symbol=True)

    user.hashed_password = get_password_hash(body.password)
    user.must_reset_password = False
    # Following the emailed link proves the address.
    if user.email_confirmed_at is None:
        user.email_confirmed_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Password recovered for %s", user.email)
    return MessageResponse(message="Password updated. Please log in with your new password.")


@router.post("/password/force-reset", response_model=ForceResetResponse)
async def force_reset_password(
    body: PasswordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ForceResetResponse:
    """Replace a temporary password and clear the forced-reset flag."""
    _check_policy(body.password)

    current_user.hashed_password = get_password_hash(body.password)
    current_user.must_reset_password = False
    await db.commit()
    await db.refresh(current_user)
    logger.info("Forced password reset completed for %s", current_user.email)

    return ForceResetResponse(
        user=SessionUser.model_validate(current_user),
        view=resolve_view(current_user).view,
    )


@router.post("/password", response_model=MessageResponse)
async def update_password(
    body: PasswordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    """Change the signed-in user's password."""
    _check_policy(body.password)

    current_user.hashed_password = get_password_hash(body.password)
    await db.commit()
    logger.info("Password changed for %s", current_user.email)
    return MessageResponse(message="Password updated")
