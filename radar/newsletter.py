"""Newsletter ingestion from Resend ``email.received`` webhooks."""

from __future__ import annotations

import logging
from email.utils import parseaddr
from typing import Any

import httpx
from pydantic import BaseModel

from radar.config import Settings, get_settings
from radar.errors import InvalidPayload
from radar.extraction import ExtractionAdapter, ExtractionContext
from radar.metrics import MetricsCollector
from radar.models import IngestResult
from radar.pipeline import IngestionPipeline
from radar.store import EventStore
from radar.validation import EligibilityValidator

logger = logging.getLogger(__name__)

EMAIL_RECEIVED = "email.received"


class InboundResult(BaseModel):
    ignored: bool = False
    reason: str | None = None
    result: IngestResult | None = None


def source_from_sender(sender: str | None) -> str:
    """``"Startup Tirol <news@startup.tirol>"`` -> ``"startup"``."""
    _, address = parseaddr(sender or "")
    if "@" not in address:
        return "newsletter"
    domain = address.rsplit("@", 1)[1]
    return domain.split(".")[0] or "newsletter"


def is_radar_recipient(to: Any, alias: str) -> bool:
    addresses = to if isinstance(to, list) else [to]
    alias = alias.lower()
    return any(addr and alias in str(addr).lower() for addr in addresses)


class NewsletterPipeline:
    """Ingest events from newsletters sent to the radar alias.

    Uses the strict validator (AI relevance included). Mail for other
    recipients and non-``email.received`` webhooks are ignored.
    """

    def __init__(
        self,
        store: EventStore,
        metrics: MetricsCollector,
        extractor: ExtractionAdapter,
        settings: Settings | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.store = store
        self.metrics = metrics
        self.extractor = extractor
        self.settings = settings or get_settings()
        self._http = http
        self.validator = EligibilityValidator(self.settings.vocabulary, check_relevance=True)

    async def handle(self, payload: dict[str, Any]) -> InboundResult:
        if payload.get("type") != EMAIL_RECEIVED:
            logger.info("Ignoring webhook of type %r", payload.get("type"))
            return InboundResult(ignored=True, reason="not_email_received")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise InvalidPayload("webhook payload has no data object")

        sender, to, subject = data.get("from"), data.get("to"), data.get("subject") or ""
        if not is_radar_recipient(to, self.settings.radar_alias):
            logger.info("Ignoring mail not addressed to the radar alias (to=%s)", to)
            return InboundResult(ignored=True, reason="not_radar_recipient")

        logger.info("Newsletter received from %s: %s", sender, subject)
        await self.metrics.newsletter_received()

        body = await self._body(data)
        context = ExtractionContext(
            source_name=source_from_sender(sender),
            sender=sender,
            subject=subject,
            newsletter=True,
        )
        candidates = await self.extractor.extract(body, context)

        tail = IngestionPipeline(self.store, self.metrics, self.validator)
        result = await tail.process(candidates, context.source_name)
        logger.info(
            "Newsletter from %s: %d found, %d added, %d rejected",
            sender, result.found, result.added, result.rejected,
        )
        return InboundResult(result=result)

    async def _body(self, data: dict[str, Any]) -> str:
        """Fetch the full body from Resend, falling back to what the webhook carried."""
        inline = data.get("html") or data.get("text")
        email_id = data.get("email_id")
        if email_id and self.settings.resend_api_key:
            client = self._http or httpx.AsyncClient(timeout=self.settings.fetch_timeout)
            try:
                resp = await client.get(
                    f"{self.settings.resend_base_url}/emails/receiving/{email_id}",
                    headers={"Authorization": f"Bearer {self.settings.resend_api_key}"},
                )
                resp.raise_for_status()
                fetched = resp.json()
                body = fetched.get("html") or fetched.get("text") or fetched.get("body")
                if body:
                    return body
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Could not fetch email %s: %s", email_id, exc)
            finally:
                if self._http is None:
                    await client.aclose()

        if inline:
            return inline
        return f"Subject: {data.get('subject')}\nFrom: {data.get('from')}\nNote: email body unavailable"
