"""
JWT token creation / verification and password hashing (bcrypt).

Four token types share one signing key and are told apart by the ``type``
claim: ``access``, ``refresh``, ``recovery`` (password-reset links) and
``signup`` (email confirmation links).
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from tracker.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY

TOKEN_ACCESS = "access"
TOKEN_REFRESH = "refresh"
TOKEN_RECOVERY = "recovery"
TOKEN_SIGNUP = "signup"


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def _encode(
    subject: str | Any, token_type: str, expires_delta: timedelta, **claims: Any
) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(
        {**claims, "exp": expire, "sub": str(subject), "type": token_type},
        _SECRET,
        algorithm=_ALGORITHM,
    )


def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
) -> str:
    return _encode(
        subject,
        TOKEN_ACCESS,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(subject: str | Any) -> str:
    return _encode(
        subject, TOKEN_REFRESH, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def password_fingerprint(hashed_password: str) -> str:
    """Short digest of the stored hash. It changes whenever the password does."""
    return hashlib.sha256(hashed_password.encode()).hexdigest()[:16]


def create_recovery_token(subject: str | Any, hashed_password: str) -> str:
    """Recovery link token, valid only while the password is unchanged.

    Setting a new password invalidates every link issued before it.
    """
    return _encode(
        subject,
        TOKEN_RECOVERY,
        timedelta(minutes=settings.RECOVERY_TOKEN_EXPIRE_MINUTES),
        pwd=password_fingerprint(hashed_password),
    )


def recovery_token_matches(payload: dict, hashed_password: str) -> bool:
    return hmac.compare_digest(
        str(payload.get("pwd", "")), password_fingerprint(hashed_password)
    )


def create_confirmation_token(subject: str | Any) -> str:
    return _encode(
        subject,
        TOKEN_SIGNUP,
        timedelta(hours=settings.CONFIRMATION_TOKEN_EXPIRE_HOURS),
    )


def decode_token(token: str, expected_type: str) -> dict | None:
    """Return payload dict if the token is valid and of *expected_type*, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def decode_access_token(token: str) -> dict | None:
    return decode_token(token, TOKEN_ACCESS)


def decode_refresh_token(token: str) -> dict | None:
    return decode_token(token, TOKEN_REFRESH)
