"""Ingestion: content -> candidates -> eligibility -> dedup -> store."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Sequence

from radar.base import BaseSource, ConfiguredSource, active_sources, get_source
from radar.config import Settings, get_settings
from radar.errors import FetchError, SourceMisconfigured, SourceNotFound
from radar.extraction import ExtractionAdapter, ExtractionContext
from radar.identity import event_id
from radar.metrics import MetricsCollector
from radar.models import (
    DEFAULT_CITY,
    DEFAULT_TIME,
    CandidateEvent,
    EventRecord,
    EventStatus,
    IngestResult,
)
from radar.notify import EmailNotifier
from radar.source_config import SourceConfigProvider
from radar.store import EventStore
from radar.validation import EligibilityValidator

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 5


def to_record(candidate: CandidateEvent, source: str, now: dt.datetime | None = None) -> EventRecord:
    """Build a pending record from a validated candidate."""
    now = now or dt.datetime.now(dt.timezone.utc)
    day = dt.date.fromisoformat(candidate.date.strip()[:10])
    return EventRecord(
        id=event_id(candidate.title, day.isoformat(), candidate.location, candidate.city),
        title=candidate.title,
        date=day,
        time=candidate.time or DEFAULT_TIME,
        end_time=candidate.end_time,
        location=candidate.location,
        address=candidate.address,
        city=candidate.city or DEFAULT_CITY,
        category=candidate.category,
        description=candidate.description,
        registration_url=candidate.registration_url,
        detail_url=candidate.detail_url,
        tags=candidate.tags,
        language=candidate.language,
        source=source,
        status=EventStatus.PENDING,
        created_at=now,
    )


class IngestionPipeline:
    """The per-candidate tail every entry point shares.

    Only adds records. The existence check and the create are two store
    round trips; ``put_if_absent`` makes the create itself first-writer-wins
    and the cleanup sweep merges whatever still slips through.
    """

    def __init__(
        self,
        store: EventStore,
        metrics: MetricsCollector,
        validator: EligibilityValidator,
    ) -> None:
        self.store = store
        self.metrics = metrics
        self.validator = validator

    async def process(
        self,
        candidates: Sequence[CandidateEvent],
        source: str,
        *,
        test_mode: bool = False,
    ) -> IngestResult:
        result = IngestResult(source=source, found=len(candidates), test_mode=test_mode)
        previewed: set[str] = set()

        for candidate in candidates:
            validation = self.validator.validate(candidate)
            if not validation.is_valid:
                result.rejected += 1
                logger.info(
                    "Rejected %r: %s", candidate.title, ", ".join(validation.reasons),
                    extra={"source": source, "reasons": validation.reasons},
                )
                continue

            try:
                record = to_record(candidate, source)
            except ValueError:
                result.rejected += 1
                logger.info("Rejected %r: unparsable date %r", candidate.title, candidate.date)
                continue

            if record.id in previewed or await self.store.exists(record.id):
                result.duplicates += 1
                logger.debug("Duplicate %s", record.id)
                continue

            if test_mode:
                previewed.add(record.id)
                if len(result.events) < PREVIEW_LIMIT:
                    result.events.append(record.to_public())
                continue

            if not await self.store.put_if_absent(record):
                result.duplicates += 1
                continue

            result.added += 1
            logger.info("Added %r on %s", record.title, record.date, extra={"source": source, "id": record.id})
            if len(result.events) < PREVIEW_LIMIT:
                result.events.append(record.to_public())

        if not test_mode:
            await self.metrics.found(source, result.found)
            await self.metrics.added(source, result.added)
            await self.metrics.rejected(source, result.rejected)
            await self.metrics.duplicates(source, result.duplicates)
            await self.metrics.record_run(source, success=True)
        return result


class SourcePipeline:
    """Fetch one source, extract, then run the shared tail."""

    def __init__(
        self,
        store: EventStore,
        metrics: MetricsCollector,
        extractor: ExtractionAdapter,
        settings: Settings | None = None,
        *,
        window_days_back: int | None = None,
    ) -> None:
        self.store = store
        self.metrics = metrics
        self.extractor = extractor
        self.settings = settings or get_settings()
        self.window_days_back = window_days_back

    async def run_source(self, source: BaseSource, *, test_mode: bool = False) -> IngestResult:
        descriptor = source.descriptor
        try:
            raw = await source.content()
        except FetchError as exc:
            logger.error("Fetch failed for %s: %s", descriptor.name, exc)
            if not test_mode:
                await self.metrics.record_run(descriptor.name, success=False, error=str(exc))
            return IngestResult(source=descriptor.name, success=False, test_mode=test_mode, error=str(exc))

        context = ExtractionContext.for_source(descriptor, window_days_back=self.window_days_back)
        candidates = await self.extractor.extract(raw, context)

        validator = EligibilityValidator(
            self.settings.vocabulary, check_relevance=descriptor.check_relevance
        )
        tail = IngestionPipeline(self.store, self.metrics, validator)
        result = await tail.process(candidates, descriptor.name, test_mode=test_mode)
        logger.info(
            "%s: %d found, %d added, %d rejected, %d duplicates",
            descriptor.name, result.found, result.added, result.rejected, result.duplicates,
        )
        return result


class FixedSourcePipeline(SourcePipeline):
    """Sources registered in code under :mod:`radar.sources`."""

    async def run(self, name: str, *, test_mode: bool = False) -> IngestResult:
        source_cls = get_source(name)
        async with source_cls(self.settings) as source:
            return await self.run_source(source, test_mode=test_mode)


class DynamicSourcePipeline(SourcePipeline):
    """Sources whose URL and hints are looked up at call time."""

    def __init__(self, provider: SourceConfigProvider, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.provider = provider

    async def run(self, name: str, *, test_mode: bool = False) -> IngestResult:
        descriptor = await self.provider.get(name)
        if descriptor is None:
            raise SourceNotFound(name)
        if not descriptor.url:
            raise SourceMisconfigured(f"No URL configured for {name!r}")
        async with ConfiguredSource(descriptor, self.settings) as source:
            return await self.run_source(source, test_mode=test_mode)


async def run_all_sources(
    pipeline: FixedSourcePipeline,
    notifier: EmailNotifier | None = None,
    *,
    names: Sequence[str] | None = None,
    test_mode: bool = False,
    batch_size: int | None = None,
) -> list[IngestResult]:
    """Run sources in small concurrent batches; one failure never stops the rest."""
    names = list(names) if names else [cls.name for cls in active_sources()]
    batch_size = batch_size or pipeline.settings.run_all_batch_size

    async def _one(name: str) -> IngestResult:
        try:
            return await pipeline.run(name, test_mode=test_mode)
        except Exception as exc:
            logger.exception("Source %s failed", name)
            return IngestResult(source=name, success=False, test_mode=test_mode, error=str(exc))

    results: list[IngestResult] = []
    for start in range(0, len(names), batch_size):
        batch = names[start:start + batch_size]
        logger.info("Running batch %d: %s", start // batch_size + 1, ", ".join(batch))
        results.extend(await asyncio.gather(*(_one(name) for name in batch)))

    failures = {r.source: r.error or "unknown error" for r in results if not r.success}
    if failures and notifier is not None and not test_mode:
        await notifier.source_failures(failures)
    return results
