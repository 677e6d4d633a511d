"""
Submission table state for both dashboards.

Status changes are optimistic: the row shows the new status at once and is
put back if the backend refuses.
"""

from __future__ import annotations

import logging
from typing import Any

from tracker.client.api import ApiError, PortalApiClient
from tracker.client.forms import check_submission
from tracker.client.notifications import NotificationCenter
from tracker.core.locale import Translator

logger = logging.getLogger(__name__)


class SubmissionsTable:
    def __init__(self, api: PortalApiClient, notifications: NotificationCenter, t: Translator) -> None:
        self.api = api
        self.notifications = notifications
        self.t = t
        self.rows: list[dict[str, Any]] = []

    def get(self, submission_id: str) -> dict[str, Any] | None:
        return next((r for r in self.rows if r["id"] == submission_id), None)

    async def load_mine(self) -> list[dict[str, Any]]:
        self.rows = await self.api.my_submissions()
        return self.rows

    async def load_all(self, status: str | None = None, client_id: str | None = None) -> list[dict[str, Any]]:
        self.rows = await self.api.all_submissions(status=status, client_id=client_id)
        return self.rows

    async def submit(
        self,
        report_date: str,
        weight_kg: str | float,
        photos: list[tuple[str, bytes, str]],
        notes: str | None = None,
    ) -> dict[str, Any] | None:
        """Validate locally, then file the report. Returns the new row or ``None``."""
        weight = check_submission(self.t, report_date, weight_kg, photos)
        try:
            row = await self.api.create_submission(report_date, weight, photos, notes)
        except ApiError as e:
            self.notifications.error(e.message)
            return None
        self.rows.insert(0, row)
        self.notifications.success(self.t("toast.submission_created"))
        return row

    async def set_status(self, submission_id: str, status: str) -> bool:
        row = self.get(submission_id)
        if row is None:
            raise KeyError(submission_id)
        previous = row["status"]
        if previous == status:
            return True

        row["status"] = status
        try:
            updated = await self.api.update_status(submission_id, status, version=row.get("version"))
        except ApiError as e:
            row["status"] = previous
            logger.info("Reverted %s to %s: %s", submission_id, previous, e.message)
            self.notifications.error(self.t("toast.status_update_failed", error=e.message))
            return False

        row.update(updated)
        self.notifications.success(self.t("toast.status_updated", status=self.t.status_label(status)))
        return True
