"""
Production Tracker — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `models/`, `services/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select

from tracker.api.v1.api import api_router
from tracker.core.config import settings
from tracker.core.exceptions import register_exception_handlers
from tracker.core.rate_limit import limiter
from tracker.core.security import get_password_hash
from tracker.db.base import Base
from tracker.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from tracker.models.access_request import AccessRequest  # noqa: F401
from tracker.models.allowlist import AllowlistClient  # noqa: F401
from tracker.models.audit_log import AdminAuditLog  # noqa: F401
from tracker.models.submission import Submission, SubmissionPhoto  # noqa: F401
from tracker.models.user import ROLE_ADMIN, User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    # Seed default admin user on first run
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL.lower())
        )
        if result.scalar_one_or_none() is None:
            admin = User(
                email=settings.FIRST_ADMIN_EMAIL.lower(),
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                role=ROLE_ADMIN,
                client_id="ADMIN",
                client_name="Administration",
                email_confirmed_at=datetime.now(timezone.utc),
            )
            session.add(admin)
            await session.commit()
            logger.info(
                "Default admin created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_EMAIL,
            )

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-tenant production reporting portal",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting (slowapi reads the limiter from app state)
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Serve uploaded photos
    storage_dir = Path(settings.STORAGE_DIR)
    storage_dir.mkdir(parents=True, exist_ok=True)
    application.mount(
        settings.STORAGE_URL_PREFIX,
        StaticFiles(directory=str(storage_dir)),
        name="storage",
    )
    logger.info("Photo storage mounted from %s", storage_dir.resolve())

    return application


app = create_app()
