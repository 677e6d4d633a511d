"""Pydantic schemas for submissions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from tracker.models.submission import SubmissionStatus


class PhotoRead(BaseModel):
    position: int
    path: str
    url: str

    model_config = {"from_attributes": True}


class SubmissionRead(BaseModel):
    id: str
    client_id: str
    user_id: int
    user_email: str | None = None
    date: str
    weight_kg: float
    notes: str | None
    photos: list[PhotoRead]
    status: SubmissionStatus
    version: int
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: SubmissionStatus
    # When given, the update only applies if the row is still at this version.
    version: int | None = None


# Column order of the CSV export.
CSV_FIELDS = [
    "id",
    "date",
    "client_id",
    "user_email",
    "weight_kg",
    "notes",
    "status",
    "photo_urls",
    "created_at",
]
