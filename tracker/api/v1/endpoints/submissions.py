"""
Submission endpoints — clients file weighing reports with photo evidence,
admins review them.

- POST /submissions and GET /submissions/mine require a client account.
- GET /submissions and PATCH /submissions/{id}/status require admin role.
- GET /submissions/export/csv exports whatever the caller may list.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import date, datetime, timezone

from fastapi import (APIRouter, Depends, File, Form, HTTPException, Query,
                     UploadFile)
from fastapi.responses import StreamingResponse
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.v1.deps import (get_db, get_ready_user, require_admin,
                                 require_client)
from tracker.core.config import settings
from tracker.models.submission import (Submission, SubmissionPhoto,
                                       SubmissionStatus)
from tracker.models.user import User
from tracker.schemas.submission import CSV_FIELDS, StatusUpdate, SubmissionRead
from tracker.services.accounts import record_audit
from tracker.services.csv_export import iter_csv
from tracker.services.storage import PhotoStorage, StorageError, get_storage

router = APIRouter(prefix="/submissions", tags=["submissions"])
logger = logging.getLogger(__name__)

_PATH_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp", "image/gif": "gif"}


# ── Helpers ─────────────────────────────────────────────────────────
def _photo_extension(upload: UploadFile) -> str:
    if upload.content_type in _EXTENSIONS:
        return _EXTENSIONS[upload.content_type]
    suffix = (upload.filename or "").rsplit(".", 1)[-1].lower()
    return suffix if suffix.isalnum() and len(suffix) <= 5 else "jpg"


async def _read_photos(photos: list[UploadFile]) -> list[tuple[str, bytes]]:
    """Validate every photo up front; nothing is uploaded if any check fails."""
    low, high = settings.SUBMISSION_MIN_PHOTOS, settings.SUBMISSION_MAX_PHOTOS
    if not low <= len(photos) <= high:
        raise HTTPException(
            status_code=422,
            detail=f"Between {low} and {high} photos are required, got {len(photos)}",
        )

    files = []
    for upload in photos:
        if not (upload.content_type or "").startswith("image/"):
            raise HTTPException(
                status_code=422,
                detail=f"'{upload.filename}' is not an image",
            )
        data = await upload.read()
        if len(data) > settings.MAX_PHOTO_BYTES:
            raise HTTPException(
                status_code=422,
                detail=f"'{upload.filename}' exceeds the {settings.MAX_PHOTO_BYTES // (1024 * 1024)}MB limit",
            )
        files.append((_photo_extension(upload), data))
    return files


async def _discard(storage: PhotoStorage, paths: list[str]) -> None:
    if not paths:
        return
    try:
        await storage.remove(paths)
    except OSError as e:
        logger.error("Could not remove orphaned photos %s: %s", paths, e)


async def _get_submission(db: AsyncSession, submission_id: str) -> Submission:
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


def _version_conflict(version: int | None) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail=f"Submission changed since version {version}; reload and try again",
    )


def _csv_row(s: Submission) -> dict[str, object]:
    return {
        "id": s.id,
        "date": s.date,
        "client_id": s.client_id,
        "user_email": s.user_email,
        "weight_kg": f"{s.weight_kg:.2f}",
        "notes": s.notes,
        "status": s.status,
        "photo_urls": [p.url for p in s.photos],
        "created_at": s.created_at,
    }


# ── Client side ─────────────────────────────────────────────────────
@router.post("", response_model=SubmissionRead, status_code=201)
async def create_submission(
    report_date: date = Form(..., alias="date"),
    weight_kg: float = Form(..., gt=0, le=1_000_000),
    notes: str | None = Form(None, max_length=2000),
    photos: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
    user: User = Depends(require_client),
) -> Submission:
    """File a new report. Photos are uploaded first, then the row is inserted.

    If any step fails, photos already written for this submission are removed.
    """
    files = await _read_photos(photos or [])

    submission_id = str(uuid.uuid4())
    prefix = f"{_PATH_UNSAFE.sub('_', user.client_id)}/{submission_id}"
    uploaded: list[tuple[str, str]] = []

    try:
        for position, (ext, data) in enumerate(files, start=1):
            path = f"{prefix}/{position}.{ext}"
            uploaded.append((path, await storage.upload(path, data)))

        submission = Submission(
            id=submission_id,
            client_id=user.client_id,
            user_id=user.id,
            date=report_date.isoformat(),
            weight_kg=round(weight_kg, 2),
            notes=notes.strip() if notes and notes.strip() else None,
            status=SubmissionStatus.PENDING.value,
            photos=[
                SubmissionPhoto(position=i, path=path, url=url)
                for i, (path, url) in enumerate(uploaded, start=1)
            ],
        )
        db.add(submission)
        await db.commit()
    except StorageError as e:
        await _discard(storage, [p for p, _ in uploaded])
        logger.error("Submission %s aborted: %s", submission_id, e)
        raise HTTPException(status_code=502, detail=f"Photo upload failed: {e}") from e
    except SQLAlchemyError:
        await db.rollback()
        await _discard(storage, [p for p, _ in uploaded])
        raise

    logger.info(
        "Submission %s created by %s (%s, %.2f kg, %d photos)",
        submission_id, user.email, report_date, weight_kg, len(uploaded),
    )
    return await _get_submission(db, submission_id)


@router.get("/mine", response_model=list[SubmissionRead])
async def list_own_submissions(
    skip: int = 0,
    limit: int = Query(default=100, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_client),
) -> list[Submission]:
    """Reports filed under the caller's client id, newest first."""
    result = await db.execute(
        select(Submission)
        .where(Submission.client_id == user.client_id)
        .order_by(Submission.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


# ── Admin side ──────────────────────────────────────────────────────
@router.get("", response_model=list[SubmissionRead])
async def list_submissions(
    status: SubmissionStatus | None = None,
    client_id: str | None = None,
    skip: int = 0,
    limit: int = Query(default=100, le=1000),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[Submission]:
    query = select(Submission).order_by(Submission.created_at.desc()).offset(skip).limit(limit)
    if status is not None:
        query = query.where(Submission.status == status.value)
    if client_id:
        query = query.where(Submission.client_id == client_id)
    result = await db.execute(query)
    return list(result.scalars().all())


@router.get("/export/csv")
async def export_submissions_csv(
    status: SubmissionStatus | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_ready_user),
) -> StreamingResponse:
    """Download submissions as CSV (admins: all, clients: their own)."""
    query = select(Submission).order_by(Submission.created_at.desc())
    if not user.is_admin:
        if not user.client_id:
            raise HTTPException(status_code=403, detail="Client account required")
        query = query.where(Submission.client_id == user.client_id)
    if status is not None:
        query = query.where(Submission.status == status.value)

    result = await db.execute(query)
    rows = [_csv_row(s) for s in result.scalars().all()]
    filename = f"submissions_{datetime.now(timezone.utc):%Y%m%d}.csv"

    return StreamingResponse(
        iter_csv(rows, CSV_FIELDS),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{submission_id}", response_model=SubmissionRead)
async def get_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_ready_user),
) -> Submission:
    submission = await _get_submission(db, submission_id)
    if not user.is_admin and submission.client_id != user.client_id:
        # Same answer as a missing row: other tenants' ids are not confirmed.
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@router.patch("/{submission_id}/status", response_model=SubmissionRead)
async def update_submission_status(
    submission_id: str,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Submission:
    """Set the review status.

    Re-applying the current status changes nothing. With ``version`` the
    update is rejected (409) if someone else changed the row first; without
    it the last write wins.
    """
    submission = await _get_submission(db, submission_id)
    if body.version is not None and body.version != submission.version:
        raise _version_conflict(body.version)
    if submission.status == body.status.value:
        return submission

    previous = submission.status
    # The version compare and the write are one statement.
    stmt = (
        update(Submission)
        .where(Submission.id == submission_id)
        .values(
            status=body.status.value,
            version=Submission.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
    )
    if body.version is not None:
        stmt = stmt.where(Submission.version == body.version)
    result = await db.execute(stmt)
    if result.rowcount == 0:
        await db.rollback()
        logger.info("Status change on %s lost the race at version %s", submission_id, body.version)
        raise _version_conflict(body.version)

    record_audit(
        db,
        admin,
        "submission.status",
        submission.user_email,
        submission_id=submission_id,
        from_status=previous,
        to_status=body.status.value,
    )
    await db.commit()
    logger.info("Submission %s: %s -> %s by %s", submission_id, previous, body.status.value, admin.email)
    return await _get_submission(db, submission_id)
