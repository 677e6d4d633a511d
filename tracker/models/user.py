"""
User model — identity, profile and role-based access control in one row.

Users are never hard-deleted: deactivation clears ``is_active`` and archiving
additionally stamps ``archived_at`` so the account drops out of admin lists.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from tracker.db.base import Base

ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ROLE_CLIENT,
        server_default=ROLE_CLIENT,
    )  # admin | client
    client_id: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]
    client_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    must_reset_password: bool = Column(  # type: ignore[assignment]
        Boolean, nullable=False, default=False, server_default="false"
    )
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    email_confirmed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    last_sign_in_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    archived_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
