"""
AllowlistClient model — emails pre-approved to self-register.

An inactive entry blocks new signups and ends existing sessions for the
account sharing the email.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from tracker.db.base import Base


class AllowlistClient(Base):
    __tablename__ = "allowlist_clients"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    client_id: str = Column(String(64), nullable=False)  # type: ignore[assignment]
    client_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    active: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
