"""
Form checks run before any request is made.

A failing check raises ``FormError`` with a display message from the
locale table; the backend is never called.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from tracker.core.config import settings
from tracker.core.locale import Translator
from tracker.core.passwords import validate_password


class FormError(ValueError):
    def __init__(self, message: str, failed_rules: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.failed_rules = list(failed_rules)


def check_password(
    t: Translator,
    password: str,
    confirm: str | None = None,
    *,
    strict: bool = False,
) -> None:
    if confirm is not None and password != confirm:
        raise FormError(t("form.passwords_differ"))
    failed = validate_password(password, require_symbol=strict)
    if failed:
        raise FormError(t("form.password_weak"), failed)


def check_submission(
    t: Translator,
    report_date: str,
    weight_kg: str | float | None,
    photos: Sequence[tuple[str, bytes, str]],
    *,
    min_photos: int = settings.SUBMISSION_MIN_PHOTOS,
    max_photos: int = settings.SUBMISSION_MAX_PHOTOS,
    max_bytes: int = settings.MAX_PHOTO_BYTES,
) -> float:
    """Validate a report form and return the weight rounded to 2 decimals."""
    if not report_date or weight_kg in (None, ""):
        raise FormError(t("form.required_fields"))
    try:
        date.fromisoformat(report_date)
        weight = float(weight_kg)  # type: ignore[arg-type]
    except ValueError as e:
        raise FormError(t("form.required_fields")) from e
    if weight <= 0:
        raise FormError(t("form.required_fields"))

    if not min_photos <= len(photos) <= max_photos:
        raise FormError(t("form.photo_count", min=min_photos, max=max_photos))
    for _name, content, content_type in photos:
        if not content_type.startswith("image/"):
            raise FormError(t("form.required_fields"))
        if len(content) > max_bytes:
            raise FormError(t("form.photo_too_large"))
    return round(weight, 2)
