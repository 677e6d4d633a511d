"""
AdminAuditLog model — one row per admin mutation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from tracker.db.base import Base


class AdminAuditLog(Base):
    __tablename__ = "admin_audit_logs"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    actor_user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    action: str = Column(String(64), nullable=False, index=True)  # type: ignore[assignment]
    target_email: str | None = Column(String(320), nullable=True)  # type: ignore[assignment]
    payload: dict = Column(JSON, nullable=False, default=dict)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
