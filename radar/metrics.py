"""Ingestion counters (global, per day, per source) kept in Redis."""

from __future__ import annotations

import datetime as dt
import logging
from collections import Counter
from enum import Enum
from typing import TYPE_CHECKING, Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from radar.identity import normalize
from radar.models import EventStatus

if TYPE_CHECKING:
    from radar.store import EventStore

logger = logging.getLogger(__name__)

GLOBAL_KEY = "radar:metrics:global"
DAILY_KEY = "radar:metrics:daily:{date}"
SOURCE_KEY = "radar:metrics:source:{slug}"
CLEANUP_KEY = "radar:metrics:cleanup"

DAILY_TTL = 60 * 60 * 24 * 90


class Metric(str, Enum):
    FOUND = "found"
    ADDED = "added"
    REJECTED = "rejected"
    DUPLICATES = "duplicates"


def _today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class MetricsCollector:
    """Typed counter increments backed by the event store's Redis.

    Counters are reporting-only; a Redis failure while bumping them is logged
    and never fails the ingestion run that produced them.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    async def increment(self, metric: Metric, source: str, amount: int = 1) -> None:
        if amount <= 0:
            return
        day = _today().isoformat()
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hincrby(GLOBAL_KEY, metric.value, amount)
                pipe.hincrby(DAILY_KEY.format(date=day), metric.value, amount)
                pipe.expire(DAILY_KEY.format(date=day), DAILY_TTL)
                pipe.hincrby(SOURCE_KEY.format(slug=normalize(source)), metric.value, amount)
                await pipe.execute()
        except RedisError:
            logger.exception("Failed to increment %s for %s", metric.value, source)

    async def found(self, source: str, amount: int = 1) -> None:
        await self.increment(Metric.FOUND, source, amount)

    async def added(self, source: str, amount: int = 1) -> None:
        await self.increment(Metric.ADDED, source, amount)

    async def rejected(self, source: str, amount: int = 1) -> None:
        await self.increment(Metric.REJECTED, source, amount)

    async def duplicates(self, source: str, amount: int = 1) -> None:
        await self.increment(Metric.DUPLICATES, source, amount)

    async def newsletter_received(self) -> None:
        try:
            await self._redis.hincrby(GLOBAL_KEY, "newsletters", 1)
        except RedisError:
            logger.exception("Failed to count newsletter")

    async def record_run(self, source: str, *, success: bool, error: str | None = None) -> None:
        """Remember when *source* last ran and whether it worked."""
        now = _now()
        fields = {"lastRun": now, "lastSuccessful": str(success).lower()}
        if success:
            fields["lastSuccess"] = now
        if error:
            fields["lastError"] = error[:500]
        try:
            await self._redis.hset(SOURCE_KEY.format(slug=normalize(source)), mapping=fields)
            await self._redis.hset(GLOBAL_KEY, "lastRun", now)
        except RedisError:
            logger.exception("Failed to record run for %s", source)

    async def record_cleanup(self, **fields: int) -> None:
        try:
            await self._redis.hset(
                CLEANUP_KEY,
                mapping={"lastRun": _now(), **{k: str(v) for k, v in fields.items()}},
            )
        except RedisError:
            logger.exception("Failed to record cleanup metrics")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def source_metrics(self, source: str) -> dict[str, str]:
        return await self._redis.hgetall(SOURCE_KEY.format(slug=normalize(source)))

    async def daily(self, day: dt.date) -> dict[str, int]:
        raw = await self._redis.hgetall(DAILY_KEY.format(date=day.isoformat()))
        return {m.value: _int(raw.get(m.value)) for m in Metric}

    async def summary(self, store: EventStore, today: dt.date | None = None) -> dict[str, Any]:
        """Dashboard numbers: today/week/total, status split, top categories and sources."""
        today = today or _today()
        status_counts: Counter[str] = Counter()
        categories: Counter[str] = Counter()
        sources: Counter[str] = Counter()
        total_events = 0

        async for record in store.list_all():
            total_events += 1
            status_counts[record.status.value] += 1
            categories[record.category.value if record.category else "Other"] += 1
            sources[record.source or "unknown"] += 1

        today_metrics = await self.daily(today)
        week = Counter()
        for offset in range(7):
            week.update(await self.daily(today - dt.timedelta(days=offset)))

        global_metrics = await self._redis.hgetall(GLOBAL_KEY)

        approved = status_counts[EventStatus.APPROVED.value]
        rejected = status_counts[EventStatus.REJECTED.value]
        reviewed = approved + rejected

        return {
            "today": {"found": today_metrics["found"], "added": today_metrics["added"]},
            "week": {"found": week["found"], "added": week["added"]},
            "total": {
                "events": total_events,
                "found": _int(global_metrics.get("found")),
                "added": _int(global_metrics.get("added")),
                "rejected": _int(global_metrics.get("rejected")),
                "duplicates": _int(global_metrics.get("duplicates")),
                "newsletters": _int(global_metrics.get("newsletters")),
            },
            "status": {
                "pending": status_counts[EventStatus.PENDING.value],
                "approved": approved,
                "rejected": rejected,
                "approvalRate": round(approved / reviewed * 100) if reviewed else 0,
            },
            "categories": [{"name": n, "count": c} for n, c in categories.most_common(5)],
            "sources": [{"name": n, "count": c} for n, c in sources.most_common(5)],
            "lastRun": global_metrics.get("lastRun"),
        }
