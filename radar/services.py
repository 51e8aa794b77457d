"""Wiring: one place that builds the store, collaborators and pipelines."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import radar.sources  # noqa: F401
from radar.config import Settings, get_settings
from radar.extraction import ExtractionAdapter
from radar.errors import SheetsError
from radar.llm import CompletionClient, OpenAICompletionClient
from radar.metrics import MetricsCollector
from radar.models import SheetsSyncResult
from radar.newsletter import NewsletterPipeline
from radar.notify import EmailNotifier
from radar.pipeline import DynamicSourcePipeline, FixedSourcePipeline
from radar.sheets import SheetsClient, sync_events
from radar.source_config import SheetsSourceConfigProvider, SourceConfigProvider, StaticSourceConfigProvider
from radar.store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: EventStore
    llm: CompletionClient
    notifier: EmailNotifier
    sheets: SheetsClient | None = None
    source_config: SourceConfigProvider = field(default_factory=StaticSourceConfigProvider)

    def __post_init__(self) -> None:
        self.metrics = MetricsCollector(self.store.redis)
        self.extractor = ExtractionAdapter(self.llm, self.settings)
        self.fixed = FixedSourcePipeline(self.store, self.metrics, self.extractor, self.settings)
        self.dynamic = DynamicSourcePipeline(
            self.source_config, self.store, self.metrics, self.extractor, self.settings
        )
        self.newsletter = NewsletterPipeline(self.store, self.metrics, self.extractor, self.settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Services:
        settings = settings or get_settings()
        sheets = SheetsClient.from_settings(settings)
        if sheets is None:
            logger.info("Google Sheets not configured; dynamic sources and sheet sync disabled")
        return cls(
            settings=settings,
            store=EventStore.from_url(settings.redis_url),
            llm=OpenAICompletionClient(settings),
            notifier=EmailNotifier(settings),
            sheets=sheets,
            source_config=SheetsSourceConfigProvider(sheets) if sheets else StaticSourceConfigProvider(),
        )

    async def resync_sheets(self) -> SheetsSyncResult | None:
        """Refresh the reporting tabs after a cleanup.

        Returns ``None`` when Sheets is not configured or the Events tab
        could not be written; the cleanup itself has already happened.
        """
        if self.sheets is None:
            logger.info("Skipping Sheets resync: not configured")
            return None
        try:
            return await sync_events(self.store, self.sheets, self.metrics)
        except SheetsError as exc:
            logger.error("Sheets resync after cleanup failed: %s", exc)
            return None

    async def aclose(self) -> None:
        close = getattr(self.llm, "close", None)
        if close is not None:
            await close()
        if self.sheets is not None:
            await self.sheets.aclose()
        await self.store.close()
