"""
AccessRequest model — an anonymous visitor asking to be allowlisted.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from tracker.db.base import Base


class AccessRequest(Base):
    __tablename__ = "access_requests"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False, index=True)  # type: ignore[assignment]
    company: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    client_id: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    note: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default="pending", server_default="pending"
    )  # pending | approved | denied
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
