import random
import string
from urllib.parse import quote

import pytest
from httpx import AsyncClient

# Random and hostile input; nothing here may produce a 500.


def generate_garbage(length=100):
    return "".join(random.choices(string.ascii_letters + string.digits + "!@#$%^&*()", k=length))


def generate_sql_injection():
    payloads = ["' OR '1'='1", "'; DROP TABLE users--", "admin'--", "' UNION SELECT 1,2,3--"]
    return random.choice(payloads)


def generate_xss():
    payloads = ["<script>alert(1)</script>", "<img src=x onerror=alert(1)>", "javascript:alert(1)"]
    return random.choice(payloads)


def hostile(i, length=50):
    if i % 10 == 0:
        return generate_sql_injection()
    if i % 11 == 0:
        return generate_xss()
    return generate_garbage(length)


@pytest.mark.asyncio
async def test_omega_auth_fuzz(async_client: AsyncClient):
    """Fuzz /auth/login with random credentials."""
    for i in range(50):
        resp = await async_client.post(
            "/api/v1/auth/login",
            data={"username": hostile(i) + "@test.com", "password": generate_garbage(100)},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert resp.status_code in [401, 400, 422], f"Login crashed on iteration {i}"


@pytest.mark.asyncio
async def test_omega_signup_and_access_request_fuzz(async_client: AsyncClient):
    """Unknown emails never create accounts, whatever they look like."""
    for i in range(40):
        email = hostile(i, random.randint(1, 80))
        signup = await async_client.post("/api/v1/auth/signup", json={"email": email, "password": hostile(i + 1)})
        assert signup.status_code in [200, 422], f"Signup crashed on {email!r}"
        if signup.status_code == 200:
            assert signup.json()["status"] == "PENDING_REVIEW"

        req = await async_client.post(
            "/api/v1/access-requests",
            json={"email": email, "company": hostile(i, 300), "note": hostile(i, 500)},
        )
        assert req.status_code in [201, 422], f"Access request crashed on {email!r}"


@pytest.mark.asyncio
async def test_omega_submission_fuzz(async_client: AsyncClient, client_headers, admin_headers):
    """Fuzz the submission form and status endpoint."""
    dates = ["2020-01-01", "9999-12-31", "0000-00-00", "not-a-date", "' OR 1=1"]
    weights = ["1", "-1", "1e309", "NaN", "' OR 1=1", ""]
    for d in dates:
        for w in weights:
            resp = await async_client.post(
                "/api/v1/submissions",
                data={"date": d, "weight_kg": w, "notes": generate_xss()},
                files=[("photos", (f"{n}.jpg", b"\xff\xd8", "image/jpeg")) for n in (1, 2)],
                headers=client_headers,
            )
            assert resp.status_code in [201, 422], f"Submission crashed on date={d!r} weight={w!r}"

    for i in range(20):
        resp = await async_client.patch(
            f"/api/v1/submissions/{quote(hostile(i, 36), safe='')}/status",
            json={"status": random.choice(["approved", "rejected", hostile(i)])},
            headers=admin_headers,
        )
        assert resp.status_code in [404, 405, 422], f"Status update crashed on iteration {i}"
