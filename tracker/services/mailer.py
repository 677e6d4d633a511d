"""
Transactional email via the Resend HTTP API.

Send failures never raise: callers get an ``EmailResult`` with the error
text so they can report diagnostics (e.g. return the temporary password to
the admin when the welcome email bounced).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from tracker.core.config import settings
from tracker.core.locale import Translator

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    sent: bool
    error: str | None = None


class Mailer:
    def __init__(
        self,
        api_key: str | None,
        from_address: str,
        api_url: str,
        site_url: str | None,
        translator: Translator,
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url
        self.site_url = (site_url or "").rstrip("/")
        self.t = translator
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, text: str) -> EmailResult:
        if not self.api_key:
            logger.warning("Skipping email to %s: RESEND_API_KEY not set", to)
            return EmailResult(sent=False, error="RESEND_API_KEY not set")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.from_address,
                        "to": [to],
                        "subject": subject,
                        "text": text,
                    },
                )
        except httpx.HTTPError as exc:
            logger.error("Email request to %s failed: %s", to, exc)
            return EmailResult(sent=False, error=f"Network error: {exc}")

        if response.is_error:
            error = f"HTTP {response.status_code}: {response.text}"
            logger.error("Resend API error for %s: %s", to, error)
            return EmailResult(sent=False, error=error)

        logger.info("Email '%s' sent to %s", subject, to)
        return EmailResult(sent=True)

    # ── Templates ───────────────────────────────────────────────────
    def link(self, token: str, link_type: str) -> str:
        return f"{self.site_url}/#access_token={token}&type={link_type}"

    async def send_welcome(self, to: str, client_name: str, password: str) -> EmailResult:
        body = self.t(
            "email.welcome.body",
            client_name=client_name,
            email=to,
            password=password,
            site_url=self.site_url,
        )
        return await self.send(to, self.t("email.welcome.subject"), body)

    async def send_recovery(self, to: str, token: str) -> EmailResult:
        body = self.t("email.recovery.body", link=self.link(token, "recovery"))
        return await self.send(to, self.t("email.recovery.subject"), body)

    async def send_confirmation(self, to: str, token: str) -> EmailResult:
        body = self.t("email.confirm.body", link=self.link(token, "signup"))
        return await self.send(to, self.t("email.confirm.subject"), body)


def get_mailer() -> Mailer:
    """FastAPI dependency — mailer built from settings."""
    return Mailer(
        api_key=settings.RESEND_API_KEY,
        from_address=settings.FROM_ADDRESS,
        api_url=settings.RESEND_API_URL,
        site_url=settings.SITE_URL,
        translator=Translator.for_locale(settings.DEFAULT_LOCALE),
    )
