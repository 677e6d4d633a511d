"""
Google Sheets export — appends submission rows to a configured tab.

Authenticates as a service account: a self-signed RS256 assertion is
exchanged for an OAuth access token, then the Sheets v4 ``values:append``
endpoint is called over plain HTTPS.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from urllib.parse import quote

import httpx
from jose import JWTError, jwt

from tracker.core.config import settings

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPE = "https://www.googleapis.com/auth/spreadsheets"


class SheetsExportError(Exception):
    """Raised when the export cannot be configured or Google rejects it."""


class SheetsExporter:
    def __init__(
        self,
        client_email: str | None,
        private_key: str | None,
        sheet_id: str | None,
        sheet_tab: str | None,
        timeout: float = 30.0,
    ) -> None:
        self.client_email = client_email
        # Keys pasted into env vars usually carry literal "\n" sequences.
        self.private_key = private_key.replace("\\n", "\n") if private_key else None
        self.sheet_id = sheet_id
        self.sheet_tab = sheet_tab
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return all((self.client_email, self.private_key, self.sheet_id, self.sheet_tab))

    def _assertion(self) -> str:
        now = int(time.time())
        claims = {
            "iss": self.client_email,
            "scope": SCOPE,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JWTError as exc:
            raise SheetsExportError(f"Invalid service account key: {exc}") from exc

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            TOKEN_URL,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": self._assertion(),
            },
        )
        if response.is_error:
            raise SheetsExportError(
                f"Google token exchange failed: HTTP {response.status_code}: {response.text}"
            )
        return response.json()["access_token"]

    async def append_rows(self, rows: Sequence[Sequence[object]]) -> int:
        """Append *rows* to the tab; return the number of rows Google reports updated."""
        if not self.configured:
            raise SheetsExportError("Google Sheets environment variables are not fully configured.")
        if not rows:
            return 0

        range_ = quote(f"{self.sheet_tab}!A1", safe="")
        url = f"{SHEETS_API}/{self.sheet_id}/values/{range_}:append"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._access_token(client)
                response = await client.post(
                    url,
                    params={"valueInputOption": "USER_ENTERED"},
                    headers={"Authorization": f"Bearer {token}"},
                    json={"values": [list(r) for r in rows]},
                )
        except httpx.HTTPError as exc:
            raise SheetsExportError(f"Google Sheets request failed: {exc}") from exc

        if response.is_error:
            raise SheetsExportError(
                f"Google Sheets append failed: HTTP {response.status_code}: {response.text}"
            )
        appended = response.json().get("updates", {}).get("updatedRows", 0)
        logger.info("Appended %d row(s) to sheet %s/%s", appended, self.sheet_id, self.sheet_tab)
        return appended


def get_sheets_exporter() -> SheetsExporter:
    """FastAPI dependency — exporter built from settings."""
    return SheetsExporter(
        client_email=settings.SHEETS_CLIENT_EMAIL,
        private_key=settings.SHEETS_PRIVATE_KEY,
        sheet_id=settings.SHEET_ID,
        sheet_tab=settings.SHEET_TAB,
    )
