"""Outbound email through the Resend API."""

from __future__ import annotations

import logging
from html import escape

import httpx

from radar.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Send single messages. Delivery problems are logged, never raised."""

    def __init__(self, settings: Settings | None = None, http: httpx.AsyncClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._http = http

    @property
    def enabled(self) -> bool:
        return bool(self.settings.resend_api_key)

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.enabled:
            logger.info("Email disabled, not sending %r", subject)
            return False

        payload = {"from": self.settings.email_from, "to": [to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}"}
        client = self._http or httpx.AsyncClient(timeout=15.0)
        try:
            resp = await client.post(f"{self.settings.resend_base_url}/emails", json=payload, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Failed to send email %r: %s", subject, exc)
            return False
        finally:
            if self._http is None:
                await client.aclose()
        return True

    async def source_failures(self, failures: dict[str, str]) -> bool:
        """Tell the operator which sources failed in a run-all pass."""
        if not failures or not self.settings.notify_email:
            return False
        items = "".join(
            f"<li><b>{escape(name)}</b>: {escape(error)}</li>" for name, error in sorted(failures.items())
        )
        return await self.send(
            self.settings.notify_email,
            f"KINN RADAR: {len(failures)} source(s) failed",
            f"<p>The following sources failed during the last extraction run:</p><ul>{items}</ul>",
        )
