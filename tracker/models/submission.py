"""
Submission & SubmissionPhoto models — the weighing reports clients send in.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (Column, DateTime, Float, ForeignKey, Index, Integer,
                        String, Text)
from sqlalchemy.orm import relationship

from tracker.db.base import Base


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _new_id() -> str:
    return str(uuid.uuid4())


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (Index("ix_submissions_client_created", "client_id", "created_at"),)

    id: str = Column(String(36), primary_key=True, default=_new_id)  # type: ignore[assignment]
    client_id: str = Column(String(64), nullable=False, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    date: str = Column(String(10), nullable=False, index=True)  # type: ignore[assignment]  # YYYY-MM-DD
    weight_kg: float = Column(Float, nullable=False)  # type: ignore[assignment]
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=SubmissionStatus.PENDING.value,
        server_default=SubmissionStatus.PENDING.value,
    )  # pending | approved | rejected
    # Bumped on every status change; lets reviewers detect concurrent edits.
    version: int = Column(Integer, nullable=False, default=1, server_default="1")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    photos = relationship(
        "SubmissionPhoto",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionPhoto.position",
        lazy="selectin",
    )
    user = relationship("User", lazy="joined")

    @property
    def user_email(self) -> str | None:
        return self.user.email if self.user is not None else None


class SubmissionPhoto(Base):
    __tablename__ = "submission_photos"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    submission_id: str = Column(  # type: ignore[assignment]
        String(36), ForeignKey("submissions.id"), nullable=False, index=True
    )
    position: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    path: str = Column(String(512), nullable=False)  # type: ignore[assignment]
    url: str = Column(String(1024), nullable=False)  # type: ignore[assignment]

    submission = relationship("Submission", back_populates="photos")
