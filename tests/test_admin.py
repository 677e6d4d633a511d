"""Tests for admin user, client and access-request management."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.core.passwords import UNAMBIGUOUS_CHARSETS
from tracker.main import app
from tracker.models.allowlist import AllowlistClient
from tracker.models.audit_log import AdminAuditLog
from tracker.services.sheets import (SheetsExporter, SheetsExportError,
                                     get_sheets_exporter)


async def _audit_actions(db: AsyncSession) -> list[str]:
    result = await db.execute(select(AdminAuditLog.action).order_by(AdminAuditLog.id))
    return list(result.scalars().all())


async def _login(client: AsyncClient, email: str, password: str):
    return await client.post("/api/v1/auth/login", data={"username": email, "password": password})


# ── Users ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_user_emails_temporary_password(
    async_client: AsyncClient, db_session: AsyncSession, admin_headers, mailer
):
    resp = await async_client.post(
        "/api/v1/admin/users",
        json={"email": "New@Client.test", "client_id": "NEWCO", "client_name": "New Co"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["email"] == "new@client.test"
    assert data["email_sent"] is True
    assert data["password"] is None

    to, _, body = mailer.outbox[-1]
    assert to == "new@client.test"
    password = body.split("Temporary password: ", 1)[1].split()[0]
    assert len(password) == 14
    assert set(password) <= set(UNAMBIGUOUS_CHARSETS.alphabet)

    entry = (await db_session.execute(
        select(AllowlistClient).where(AllowlistClient.email == "new@client.test")
    )).scalar_one()
    assert (entry.client_id, entry.client_name, entry.active) == ("NEWCO", "New Co", True)

    login = await _login(async_client, "new@client.test", password)
    assert login.status_code == 200
    assert login.json()["view"] == "force-reset-password"
    assert "user.create" in await _audit_actions(db_session)


@pytest.mark.asyncio
async def test_create_user_returns_password_when_email_fails(async_client: AsyncClient, admin_headers, mailer):
    mailer.fail = True
    resp = await async_client.post(
        "/api/v1/admin/users",
        json={"email": "nomail@client.test", "client_id": "NM", "client_name": "No Mail"},
        headers=admin_headers,
    )
    data = resp.json()
    assert data["email_sent"] is False
    assert "unavailable" in data["email_error"]
    assert len(data["password"]) == 14


@pytest.mark.asyncio
async def test_create_user_duplicate_email(async_client: AsyncClient, admin_headers, client_user):
    resp = await async_client.post(
        "/api/v1/admin/users",
        json={"email": client_user.email, "client_id": "ACME", "client_name": "Acme Corp"},
        headers=admin_headers,
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_admin_endpoints_reject_clients(async_client: AsyncClient, client_headers):
    for method, path in [
        ("GET", "/api/v1/admin/users"),
        ("GET", "/api/v1/admin/clients"),
        ("GET", "/api/v1/admin/system-health"),
        ("POST", "/api/v1/admin/export/sheets"),
    ]:
        resp = await async_client.request(method, path, headers=client_headers)
        assert resp.status_code == 403, path


@pytest.mark.asyncio
async def test_list_users_derives_status(async_client: AsyncClient, admin_headers, make_user, client_user):
    await make_user("reset@acme.test", must_reset_password=True)
    await make_user("paused@acme.test", allowlist_active=False)
    await make_user("unconfirmed@acme.test", confirmed=False)

    resp = await async_client.get("/api/v1/admin/users", headers=admin_headers)
    status = {u["email"]: u["status"] for u in resp.json()}
    assert status == {
        "admin@tracker.test": "ACTIVE",
        client_user.email: "ACTIVE",
        "reset@acme.test": "PENDING_RESET",
        "paused@acme.test": "INACTIVE",
        "unconfirmed@acme.test": "CONFIRMATION_SENT",
    }
    admin_row = next(u for u in resp.json() if u["role"] == "admin")
    assert admin_row["active_on_allowlist"] is True


@pytest.mark.asyncio
async def test_reset_password_forces_change(async_client: AsyncClient, admin_headers, client_user):
    resp = await async_client.post(f"/api/v1/admin/users/{client_user.id}/reset-password", headers=admin_headers)
    assert resp.status_code == 200
    password = resp.json()["password_cleartext"]
    assert 14 <= len(password) <= 16

    login = await _login(async_client, client_user.email, password)
    assert login.json()["view"] == "force-reset-password"


@pytest.mark.asyncio
async def test_deactivate_and_archive(async_client: AsyncClient, admin_headers, admin_user, client_user, make_user):
    resp = await async_client.post(f"/api/v1/admin/users/{client_user.id}/deactivate", headers=admin_headers)
    assert resp.json()["status"] == "INACTIVE"
    assert (await _login(async_client, client_user.email, "Password123")).status_code == 403

    other = await make_user("gone@acme.test")
    resp = await async_client.post(f"/api/v1/admin/users/{other.id}/archive", headers=admin_headers)
    assert resp.json()["archived_at"] is not None

    listed = await async_client.get("/api/v1/admin/users", headers=admin_headers)
    assert "gone@acme.test" not in {u["email"] for u in listed.json()}
    listed = await async_client.get("/api/v1/admin/users?include_archived=true", headers=admin_headers)
    assert "gone@acme.test" in {u["email"] for u in listed.json()}

    self_off = await async_client.post(f"/api/v1/admin/users/{admin_user.id}/deactivate", headers=admin_headers)
    assert self_off.status_code == 400


@pytest.mark.asyncio
async def test_role_change(async_client: AsyncClient, db_session: AsyncSession, admin_headers, admin_user, client_user):
    resp = await async_client.patch(f"/api/v1/admin/users/{client_user.id}/role", json={"role": "admin"}, headers=admin_headers)
    assert resp.json()["role"] == "admin"

    # "user" is accepted as the client role
    resp = await async_client.patch(f"/api/v1/admin/users/{client_user.id}/role", json={"role": "user"}, headers=admin_headers)
    assert resp.json()["role"] == "client"

    bad = await async_client.patch(f"/api/v1/admin/users/{client_user.id}/role", json={"role": "root"}, headers=admin_headers)
    assert bad.status_code == 422
    own = await async_client.patch(f"/api/v1/admin/users/{admin_user.id}/role", json={"role": "client"}, headers=admin_headers)
    assert own.status_code == 400

    assert (await _audit_actions(db_session)).count("user.role") == 2


# ── Clients ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_client_allowlist_crud(async_client: AsyncClient, db_session: AsyncSession, admin_headers):
    created = await async_client.post(
        "/api/v1/admin/clients",
        json={"email": "buyer@beta.test", "client_id": "BETA", "client_name": "Beta"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    entry_id = created.json()["id"]

    # Inviting the same email again updates the existing entry.
    again = await async_client.post(
        "/api/v1/admin/clients",
        json={"email": "buyer@beta.test", "client_id": "BETA", "client_name": "Beta SA"},
        headers=admin_headers,
    )
    assert again.json()["id"] == entry_id
    assert again.json()["client_name"] == "Beta SA"

    toggled = await async_client.patch(f"/api/v1/admin/clients/{entry_id}", json={"active": False}, headers=admin_headers)
    assert toggled.json()["active"] is False

    signup = await async_client.post("/api/v1/auth/signup", json={"email": "buyer@beta.test", "password": "Password123"})
    assert signup.json()["status"] == "PENDING_REVIEW"

    listed = await async_client.get("/api/v1/admin/clients", headers=admin_headers)
    assert [c["email"] for c in listed.json()] == ["buyer@beta.test"]

    deleted = await async_client.delete(f"/api/v1/admin/clients/{entry_id}", headers=admin_headers)
    assert deleted.json()["success"] is True
    assert (await async_client.delete(f"/api/v1/admin/clients/{entry_id}", headers=admin_headers)).status_code == 404

    assert await _audit_actions(db_session) == ["client.invite", "client.invite", "client.update", "client.delete"]


# ── Access requests ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_access_request_approval_opens_signup(async_client: AsyncClient, admin_headers):
    req = await async_client.post(
        "/api/v1/access-requests",
        json={"email": "Lead@Gamma.test", "company": "Gamma Foods", "note": "Two plants"},
    )
    assert req.status_code == 201
    assert req.json()["status"] == "pending"
    request_id = req.json()["id"]

    pending = await async_client.get("/api/v1/admin/access-requests", headers=admin_headers)
    assert [r["email"] for r in pending.json()] == ["lead@gamma.test"]

    no_client_id = await async_client.post(f"/api/v1/admin/access-requests/{request_id}/approve", headers=admin_headers)
    assert no_client_id.status_code == 422

    approved = await async_client.post(
        f"/api/v1/admin/access-requests/{request_id}/approve",
        json={"client_id": "GAMMA"},
        headers=admin_headers,
    )
    assert approved.json()["status"] == "approved"
    assert approved.json()["resolved_at"] is not None

    clients = await async_client.get("/api/v1/admin/clients", headers=admin_headers)
    assert [(c["client_id"], c["client_name"]) for c in clients.json()] == [("GAMMA", "Gamma Foods")]

    signup = await async_client.post("/api/v1/auth/signup", json={"email": "lead@gamma.test", "password": "Password123"})
    assert signup.json()["status"] == "CONFIRMATION_SENT"

    twice = await async_client.post(f"/api/v1/admin/access-requests/{request_id}/deny", headers=admin_headers)
    assert twice.status_code == 409


@pytest.mark.asyncio
async def test_access_request_deny(async_client: AsyncClient, admin_headers):
    req = await async_client.post(
        "/api/v1/access-requests",
        json={"email": "spam@x.test", "company": "Spam", "client_id": "SPAM"},
    )
    request_id = req.json()["id"]
    denied = await async_client.post(f"/api/v1/admin/access-requests/{request_id}/deny", headers=admin_headers)
    assert denied.json()["status"] == "denied"

    assert (await async_client.get("/api/v1/admin/access-requests", headers=admin_headers)).json() == []
    every = await async_client.get("/api/v1/admin/access-requests?status=all", headers=admin_headers)
    assert len(every.json()) == 1
    assert (await async_client.get("/api/v1/admin/clients", headers=admin_headers)).json() == []


@pytest.mark.asyncio
async def test_access_request_validation(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/access-requests", json={"email": "x@y.test", "company": "   "})
    assert resp.status_code == 422


# ── Audit log / health / export ─────────────────────────────────────
@pytest.mark.asyncio
async def test_audit_log_listing(async_client: AsyncClient, admin_headers, admin_user, client_user):
    await async_client.post(f"/api/v1/admin/users/{client_user.id}/reset-password", headers=admin_headers)
    logs = await async_client.get("/api/v1/admin/audit-logs", headers=admin_headers)
    assert logs.status_code == 200
    entry = logs.json()[0]
    assert entry["action"] == "user.reset_password"
    assert entry["actor_user_id"] == admin_user.id
    assert entry["target_email"] == client_user.email
    # Passwords never land in the audit trail.
    assert "password" not in str(entry["payload"])


@pytest.mark.asyncio
async def test_system_health_reports_configuration(async_client: AsyncClient, admin_headers):
    app.dependency_overrides[get_sheets_exporter] = lambda: SheetsExporter(None, None, None, None)
    try:
        resp = await async_client.get("/api/v1/admin/system-health", headers=admin_headers)
    finally:
        app.dependency_overrides.pop(get_sheets_exporter)

    data = resp.json()
    assert data["ok"] is True
    assert data["health"]["database"]["status"] == "ok"
    assert data["health"]["site_url"]["status"] == "ok"
    assert data["health"]["smtp"]["status"] == "ok"
    assert data["health"]["sheets"]["status"] == "warn"


class FakeSheets(SheetsExporter):
    def __init__(self, fail: bool = False):
        super().__init__("svc@test.iam", "key", "sheet-id", "Data")
        self.fail = fail
        self.rows: list[list[object]] = []

    async def append_rows(self, rows):
        if self.fail:
            raise SheetsExportError("Google Sheets append failed: HTTP 403")
        self.rows.extend(rows)
        return len(rows)


@pytest.mark.asyncio
async def test_export_to_sheets(async_client: AsyncClient, admin_headers, client_headers):
    sheets = FakeSheets()
    app.dependency_overrides[get_sheets_exporter] = lambda: sheets
    try:
        empty = await async_client.post("/api/v1/admin/export/sheets", headers=admin_headers)
        assert empty.json()["appended"] == 0
        assert sheets.rows == []

        await async_client.post(
            "/api/v1/submissions",
            data={"date": "2024-05-01", "weight_kg": "123.45"},
            files=[("photos", (f"{i}.jpg", b"\xff\xd8", "image/jpeg")) for i in (1, 2)],
            headers=client_headers,
        )
        resp = await async_client.post("/api/v1/admin/export/sheets", headers=admin_headers)
        assert resp.json() == {"ok": True, "appended": 1, "message": None}
        assert sheets.rows[0][:5] == ["2024-05-01", "ACME", "ops@acme.test", 123.45, "pending"]

        sheets.fail = True
        failed = await async_client.post("/api/v1/admin/export/sheets", headers=admin_headers)
        assert failed.status_code == 502
        assert "HTTP 403" in failed.json()["detail"]
    finally:
        app.dependency_overrides.pop(get_sheets_exporter)


@pytest.mark.asyncio
async def test_unconfigured_sheets_export_fails_cleanly(async_client: AsyncClient, admin_headers, client_headers):
    app.dependency_overrides[get_sheets_exporter] = lambda: SheetsExporter(None, None, None, None)
    try:
        await async_client.post(
            "/api/v1/submissions",
            data={"date": "2024-05-02", "weight_kg": "50"},
            files=[("photos", (f"{i}.jpg", b"\xff\xd8", "image/jpeg")) for i in (1, 2)],
            headers=client_headers,
        )
        resp = await async_client.post("/api/v1/admin/export/sheets", headers=admin_headers)
        assert resp.status_code == 502
        assert "not fully configured" in resp.json()["detail"]
    finally:
        app.dependency_overrides.pop(get_sheets_exporter)


@pytest.mark.asyncio
async def test_public_health(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/health")
    assert resp.json() == {"db": True}
