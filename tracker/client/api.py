"""
Async HTTP client for the portal backend.

Every non-2xx answer becomes an ``ApiError`` carrying the backend's
``detail`` message. Nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)


@dataclass
class SessionContext:
    """Tokens and profile of one signed-in session.

    Passed explicitly to whoever needs it; there is no process-wide copy.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
    recovery_token: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.user = None


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, list):
        # pydantic validation errors
        return "; ".join(str(d.get("msg", d)) for d in detail)
    return str(detail) if detail else f"HTTP {response.status_code}"


class PortalApiClient:
    def __init__(
        self,
        base_url: str,
        session: SessionContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_prefix: str = "/api/v1",
        timeout: float = 30.0,
    ) -> None:
        self.session = session or SessionContext()
        self.api_prefix = api_prefix.rstrip("/")
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PortalApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.session.access_token:
            headers["Authorization"] = f"Bearer {self.session.access_token}"
        response = await self._http.request(method, f"{self.api_prefix}{path}", headers=headers, **kwargs)
        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s failed: %s (%d)", method, path, message, response.status_code)
            raise ApiError(message, response.status_code)
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        return (await self._request(method, path, **kwargs)).json()

    # ── Auth ────────────────────────────────────────────────────────
    async def login(self, email: str, password: str) -> dict[str, Any]:
        data = await self._json("POST", "/auth/login", data={"username": email, "password": password})
        self.session.access_token = data["access_token"]
        self.session.refresh_token = data["refresh_token"]
        self.session.user = data["user"]
        return data

    async def logout(self) -> None:
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.session.clear()

    async def get_session(self) -> dict[str, Any]:
        return await self._json("GET", "/auth/session")

    async def signup(self, email: str, password: str) -> dict[str, Any]:
        return await self._json("POST", "/auth/signup", json={"email": email, "password": password})

    async def confirm_email(self, token: str) -> dict[str, Any]:
        return await self._json("POST", "/auth/confirm", json={"access_token": token})

    async def request_password_reset(self, email: str) -> dict[str, Any]:
        return await self._json("POST", "/auth/password/forgot", json={"email": email})

    async def recover_password(self, token: str, password: str) -> dict[str, Any]:
        return await self._json(
            "POST", "/auth/password/recover", json={"access_token": token, "password": password}
        )

    async def force_reset_password(self, password: str) -> dict[str, Any]:
        data = await self._json("POST", "/auth/password/force-reset", json={"password": password})
        self.session.user = data["user"]
        return data

    async def update_password(self, password: str) -> dict[str, Any]:
        return await self._json("POST", "/auth/password", json={"password": password})

    async def request_access(
        self, email: str, company: str, client_id: str | None = None, note: str | None = None
    ) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/access-requests",
            json={"email": email, "company": company, "client_id": client_id, "note": note},
        )

    # ── Submissions ─────────────────────────────────────────────────
    async def create_submission(
        self,
        date: str,
        weight_kg: float,
        photos: list[tuple[str, bytes, str]],
        notes: str | None = None,
    ) -> dict[str, Any]:
        """*photos* are ``(filename, content, content_type)`` tuples."""
        form = {"date": date, "weight_kg": str(weight_kg)}
        if notes:
            form["notes"] = notes
        files = [("photos", photo) for photo in photos]
        return await self._json("POST", "/submissions", data=form, files=files)

    async def my_submissions(self) -> list[dict[str, Any]]:
        return await self._json("GET", "/submissions/mine")

    async def all_submissions(self, status: str | None = None, client_id: str | None = None) -> list[dict[str, Any]]:
        params = {k: v for k, v in {"status": status, "client_id": client_id}.items() if v}
        return await self._json("GET", "/submissions", params=params)

    async def update_status(self, submission_id: str, status: str, version: int | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"status": status}
        if version is not None:
            body["version"] = version
        return await self._json("PATCH", f"/submissions/{submission_id}/status", json=body)

    async def export_csv(self, status: str | None = None) -> str:
        params = {"status": status} if status else {}
        return (await self._request("GET", "/submissions/export/csv", params=params)).text

    # ── Admin ───────────────────────────────────────────────────────
    async def list_users(self, include_archived: bool = False) -> list[dict[str, Any]]:
        return await self._json("GET", "/admin/users", params={"include_archived": include_archived})

    async def create_user(self, email: str, client_id: str, client_name: str) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/admin/users",
            json={"email": email, "client_id": client_id, "client_name": client_name},
        )

    async def reset_user_password(self, user_id: int) -> dict[str, Any]:
        return await self._json("POST", f"/admin/users/{user_id}/reset-password")

    async def deactivate_user(self, user_id: int) -> dict[str, Any]:
        return await self._json("POST", f"/admin/users/{user_id}/deactivate")

    async def archive_user(self, user_id: int) -> dict[str, Any]:
        return await self._json("POST", f"/admin/users/{user_id}/archive")

    async def set_role(self, user_id: int, role: str) -> dict[str, Any]:
        return await self._json("PATCH", f"/admin/users/{user_id}/role", json={"role": role})

    async def list_clients(self) -> list[dict[str, Any]]:
        return await self._json("GET", "/admin/clients")

    async def invite_client(self, email: str, client_id: str, client_name: str) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/admin/clients",
            json={"email": email, "client_id": client_id, "client_name": client_name},
        )

    async def set_client_active(self, entry_id: int, active: bool) -> dict[str, Any]:
        return await self._json("PATCH", f"/admin/clients/{entry_id}", json={"active": active})

    async def list_access_requests(self, status: str = "pending") -> list[dict[str, Any]]:
        return await self._json("GET", "/admin/access-requests", params={"status": status})

    async def approve_access_request(
        self, request_id: int, client_id: str | None = None, client_name: str | None = None
    ) -> dict[str, Any]:
        return await self._json(
            "POST",
            f"/admin/access-requests/{request_id}/approve",
            json={"client_id": client_id, "client_name": client_name},
        )

    async def deny_access_request(self, request_id: int) -> dict[str, Any]:
        return await self._json("POST", f"/admin/access-requests/{request_id}/deny")

    async def system_health(self) -> dict[str, Any]:
        return await self._json("GET", "/admin/system-health")

    async def export_to_sheets(self) -> dict[str, Any]:
        return await self._json("POST", "/admin/export/sheets")
