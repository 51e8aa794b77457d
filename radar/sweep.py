"""Cleanup passes: merge duplicates, drop invalid records, prune the past."""

from __future__ import annotations

import datetime as dt
import logging

from radar.errors import StoreError
from radar.identity import sweep_key
from radar.metrics import MetricsCollector
from radar.models import EventRecord, PruneResult, SweepResult
from radar.scoring import score
from radar.store import EventStore, decode_record

logger = logging.getLogger(__name__)


def pick_keeper(group: list[EventRecord]) -> EventRecord:
    """Highest score wins; ties go to the lexicographically smallest id."""
    return min(group, key=lambda r: (-score(r), r.id))


async def _remove(store: EventStore, event_id: str, dry_run: bool) -> bool:
    if dry_run:
        return True
    try:
        await store.remove(event_id)
    except StoreError as exc:
        logger.error("Could not remove %s: %s", event_id, exc)
        return False
    return True


async def sweep_duplicates(
    store: EventStore,
    metrics: MetricsCollector | None = None,
    *,
    dry_run: bool = False,
) -> SweepResult:
    """Collapse records sharing ``title|date`` to the most complete one.

    Records whose hash is missing or unreadable are removed as well. Running
    the sweep twice in a row removes nothing the second time.
    """
    result = SweepResult(dry_run=dry_run)
    groups: dict[str, list[EventRecord]] = {}
    invalid: list[str] = []

    async for event_id, data in store.iter_raw():
        result.total_scanned += 1
        record = decode_record(data)
        if record is None or not record.title.strip():
            invalid.append(event_id)
            continue
        groups.setdefault(sweep_key(record.title, record.date.isoformat()), []).append(record)

    doomed = list(invalid)
    for key, group in groups.items():
        if len(group) < 2:
            continue
        keeper = pick_keeper(group)
        losers = sorted(r.id for r in group if r.id != keeper.id)
        logger.info("Duplicate group %r: keeping %s, removing %s", key, keeper.id, losers)
        doomed.extend(losers)

    for event_id in doomed:
        if await _remove(store, event_id, dry_run):
            result.removed += 1
            result.removed_ids.append(event_id)

    result.kept = result.total_scanned - result.removed
    logger.info(
        "Sweep %s: scanned %d, removed %d (%d invalid), kept %d",
        "dry run" if dry_run else "done",
        result.total_scanned, result.removed, len(invalid), result.kept,
    )
    if metrics is not None and not dry_run:
        await metrics.record_cleanup(
            scanned=result.total_scanned, removed=result.removed, kept=result.kept
        )
    return result


async def prune_past_events(
    store: EventStore,
    metrics: MetricsCollector | None = None,
    *,
    today: dt.date | None = None,
    dry_run: bool = False,
) -> PruneResult:
    """Delete readable records dated strictly before *today*."""
    today = today or dt.date.today()
    result = PruneResult(dry_run=dry_run)

    async for record in store.list_all():
        result.total_scanned += 1
        if record.date >= today:
            continue
        if await _remove(store, record.id, dry_run):
            result.removed += 1
            result.removed_ids.append(record.id)

    logger.info("Prune before %s: scanned %d, removed %d", today, result.total_scanned, result.removed)
    if metrics is not None and not dry_run:
        await metrics.record_cleanup(pastRemoved=result.removed)
    return result
