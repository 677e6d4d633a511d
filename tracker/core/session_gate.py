"""
Session gate — decides which view a visitor lands on.

Every decision is recomputed from the source-of-truth fields (``role``,
``must_reset_password``, allowlist ``active``); nothing is carried over from
a previous decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from urllib.parse import parse_qs


class View(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"
    FORGOT_PASSWORD = "forgot-password"
    RESET_PASSWORD = "reset-password"
    FORCE_RESET_PASSWORD = "force-reset-password"
    REQUEST_ACCESS = "request-access"
    DASHBOARD = "dashboard"
    ADMIN_DASHBOARD = "admin-dashboard"


# Views reachable without a session.
PUBLIC_VIEWS = frozenset(
    {
        View.LOGIN,
        View.SIGNUP,
        View.FORGOT_PASSWORD,
        View.RESET_PASSWORD,
        View.REQUEST_ACCESS,
    }
)


class SessionProfile(Protocol):
    role: str
    must_reset_password: bool


@dataclass(frozen=True)
class GateDecision:
    view: View
    logout: bool = False


def resolve_view(
    profile: SessionProfile | None,
    *,
    allowlist_active: bool = True,
    recovery_token_present: bool = False,
) -> GateDecision:
    """Apply the routing table.

    ``allowlist_active`` must already fold in account deactivation: a
    deactivated or archived account is treated like an inactive allowlist
    entry.
    """
    if recovery_token_present:
        return GateDecision(View.RESET_PASSWORD)
    if profile is None:
        return GateDecision(View.LOGIN)
    if not allowlist_active:
        return GateDecision(View.LOGIN, logout=True)
    if profile.must_reset_password:
        return GateDecision(View.FORCE_RESET_PASSWORD)
    if profile.role == "admin":
        return GateDecision(View.ADMIN_DASHBOARD)
    return GateDecision(View.DASHBOARD)


def view_allows(view: View, profile: SessionProfile | None) -> bool:
    """Can *profile* stay on *view*? Used when navigating between pages."""
    if view in PUBLIC_VIEWS:
        return True
    if profile is None:
        return False
    if profile.must_reset_password:
        return view is View.FORCE_RESET_PASSWORD
    if view is View.ADMIN_DASHBOARD:
        return profile.role == "admin"
    return view in (View.DASHBOARD, View.FORCE_RESET_PASSWORD)


@dataclass(frozen=True)
class RecoveryFragment:
    access_token: str | None
    cleaned_fragment: str


def parse_recovery_fragment(fragment: str | None) -> RecoveryFragment:
    """Extract a recovery token from a URL fragment like ``#access_token=..&type=recovery``.

    The returned ``cleaned_fragment`` is what the visible URL should show once
    the token has been consumed: empty when a token was found, otherwise the
    fragment unchanged.
    """
    raw = (fragment or "").lstrip("#")
    params = parse_qs(raw, keep_blank_values=False)
    token = (params.get("access_token") or [None])[0]
    if token and (params.get("type") or [None])[0] == "recovery":
        return RecoveryFragment(access_token=token, cleaned_fragment="")
    return RecoveryFragment(access_token=None, cleaned_fragment=fragment or "")
