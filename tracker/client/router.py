"""
View router — which page the client shows.

The view is always derived from the latest profile through
``resolve_view``. Backend failures surface as error toasts. The router
keeps no state of its own beyond the current view and the session it
was handed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from tracker.client.api import ApiError, PortalApiClient
from tracker.client.forms import check_password
from tracker.client.notifications import NotificationCenter
from tracker.core.locale import Translator
from tracker.core.session_gate import (View, parse_recovery_fragment,
                                       resolve_view, view_allows)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    role: str
    must_reset_password: bool

    @classmethod
    def from_user(cls, user: dict[str, Any] | None) -> "Profile | None":
        if not user:
            return None
        return cls(role=user["role"], must_reset_password=bool(user["must_reset_password"]))


class ViewRouter:
    def __init__(
        self,
        api: PortalApiClient,
        t: Translator,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self.api = api
        self.t = t
        self.notifications = notifications or NotificationCenter()
        self.view = View.LOGIN
        self.fragment = ""

    @property
    def session(self):
        return self.api.session

    @property
    def profile(self) -> Profile | None:
        return Profile.from_user(self.session.user)

    def _route(self, **kwargs: Any) -> View:
        self.view = resolve_view(self.profile, **kwargs).view
        return self.view

    def _report(self, e: ApiError) -> None:
        # An expired or revoked session just lands on login.
        if e.is_auth_error:
            logger.info("Session rejected (%d): %s", e.status, e.message)
        else:
            logger.warning("Backend call failed (%d): %s", e.status, e.message)
            self.notifications.error(e.message)

    async def load(self, fragment: str | None = None) -> View:
        """Decide the landing view, as on a fresh page load."""
        recovery = parse_recovery_fragment(fragment)
        self.fragment = recovery.cleaned_fragment
        if recovery.access_token:
            self.session.recovery_token = recovery.access_token
            return self._route(recovery_token_present=True)

        if not self.session.authenticated:
            return self._route()

        try:
            state = await self.api.get_session()
        except ApiError as e:
            self._report(e)
            self.session.clear()
            return self._route()
        except httpx.HTTPError as e:
            logger.warning("Session check could not reach the backend: %s", e)
            self.notifications.error(self.t("toast.unexpected_error"))
            self.session.clear()
            return self._route()

        if not state["authenticated"]:
            self.session.clear()
            return self._route(allowlist_active=False)

        self.session.user = state["user"]
        return self._route()

    def on_login_success(self, login_response: dict[str, Any]) -> View:
        self.session.user = login_response["user"]
        return self._route()

    def on_force_reset_success(self, reset_response: dict[str, Any]) -> View:
        self.session.user = reset_response["user"]
        self.notifications.success(self.t("toast.password_updated"))
        return self._route()

    async def login(self, email: str, password: str) -> View:
        return self.on_login_success(await self.api.login(email, password))

    async def force_reset(self, password: str, confirm: str) -> View:
        check_password(self.t, password, confirm)
        return self.on_force_reset_success(await self.api.force_reset_password(password))

    async def request_password_reset(self, email: str) -> View:
        """Ask for a recovery link. The answer never says whether *email* exists."""
        try:
            await self.api.request_password_reset(email)
        except ApiError as e:
            self._report(e)
        else:
            self.notifications.success(self.t("toast.reset_link_sent"))
        return self.view

    async def complete_recovery(self, password: str, confirm: str) -> View:
        """Set a new password from a recovery link, then go back to login."""
        check_password(self.t, password, confirm, strict=True)
        token = self.session.recovery_token
        if token is None:
            raise ApiError("Recovery link missing or already used", 400)
        await self.api.recover_password(token, password)
        self.session.recovery_token = None
        self.session.clear()
        self.notifications.success(self.t("toast.password_updated"))
        self.view = View.LOGIN
        return self.view

    async def logout(self) -> View:
        try:
            await self.api.logout()
        except ApiError as e:
            self._report(e)
        self.view = View.LOGIN
        return self.view

    def navigate(self, view: View) -> View:
        """Go to *view* if the session may see it, else to where it belongs."""
        if view_allows(view, self.profile):
            self.view = view
        else:
            self._route()
        return self.view
