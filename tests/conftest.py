"""
Shared test fixtures for the Production Tracker test suite.

Async throughout (aiosqlite + AsyncSession). Email, photo storage and the
Sheets exporter are replaced through FastAPI dependency overrides.
"""

import os
import sys
import tempfile
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

STORAGE_ROOT = tempfile.mkdtemp(prefix="tracker-storage-")

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["STORAGE_DIR"] = STORAGE_ROOT
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SITE_URL"] = "http://portal.test"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tracker.api.v1.deps import get_db
from tracker.core.locale import Translator
from tracker.core.security import create_access_token, get_password_hash
from tracker.db.base import Base
from tracker.main import app
from tracker.models.allowlist import AllowlistClient
from tracker.models.user import User
from tracker.services.mailer import EmailResult, Mailer, get_mailer
from tracker.services.storage import PhotoStorage, get_storage

TEST_PASSWORD = "Password123"

# Separate test engine; the app's own engine is never used.
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FakeMailer(Mailer):
    """Records outgoing mail instead of calling the email API."""

    def __init__(self) -> None:
        super().__init__(
            api_key="test-key",
            from_address="noreply@tracker.test",
            api_url="http://mail.invalid/emails",
            site_url="http://portal.test",
            translator=Translator.for_locale("en"),
        )
        self.outbox: list[tuple[str, str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, text: str) -> EmailResult:
        if self.fail:
            return EmailResult(sent=False, error="HTTP 500: mail service unavailable")
        self.outbox.append((to, subject, text))
        return EmailResult(sent=True)

    def last_link_fragment(self, to: str) -> str:
        """The ``#...`` part of the newest link mailed to *to*."""
        text = next(body for addr, _, body in reversed(self.outbox) if addr == to)
        return text.split("#", 1)[1].split()[0]


fake_mailer = FakeMailer()
photo_storage = PhotoStorage(STORAGE_ROOT, "submission-photos", "/storage")


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def mailer() -> FakeMailer:
    fake_mailer.outbox.clear()
    fake_mailer.fail = False
    return fake_mailer


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db
app.dependency_overrides[get_mailer] = lambda: fake_mailer
app.dependency_overrides[get_storage] = lambda: photo_storage


@pytest.fixture
async def file_db(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """A file-backed database that the app uses for the duration of a test.

    Every session gets its own connection, so overlapping requests run in
    separate transactions. The in-memory engine above shares one connection.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with sessions() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield sessions
    finally:
        app.dependency_overrides[get_db] = _override_get_db
        await engine.dispose()


@pytest.fixture
def storage() -> PhotoStorage:
    return photo_storage


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Users ───────────────────────────────────────────────────────────
async def create_user(
    session: AsyncSession,
    email: str,
    *,
    role: str = "client",
    client_id: str | None = "ACME",
    client_name: str | None = "Acme Corp",
    password: str = TEST_PASSWORD,
    must_reset_password: bool = False,
    allowlist_active: bool | None = True,
    confirmed: bool = True,
) -> User:
    """Insert a user (and, for clients, an allowlist entry)."""
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        client_id=client_id,
        client_name=client_name,
        must_reset_password=must_reset_password,
        email_confirmed_at=datetime.now(timezone.utc) if confirmed else None,
    )
    session.add(user)
    # allowlist_active=None means "no allowlist entry at all"
    if allowlist_active is not None:
        session.add(
            AllowlistClient(
                email=email,
                client_id=client_id or "ADMIN",
                client_name=client_name or "Administration",
                active=allowlist_active,
            )
        )
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory bound to the test database."""

    async def _make(email: str, **kwargs) -> User:
        return await create_user(db_session, email, **kwargs)

    return _make


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth_headers():
    return headers_for


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(
        "admin@tracker.test",
        role="admin",
        client_id="ADMIN",
        client_name="Administration",
        allowlist_active=None,
    )


@pytest.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return headers_for(admin_user)


@pytest.fixture
async def client_user(make_user) -> User:
    return await make_user("ops@acme.test")


@pytest.fixture
async def client_headers(client_user: User) -> dict[str, str]:
    return headers_for(client_user)
