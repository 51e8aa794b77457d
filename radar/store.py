"""Redis-backed event record store.

Layout::

    radar:event:{id}              hash, one field per record attribute
    radar:events                  set of all ids
    radar:events:by-date:{date}   set of ids per ISO date

The record hash is always written before the index sets. An id left in
``radar:events`` whose hash is gone is harmless: readers skip it and the
cleanup sweep removes it.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from typing import Any

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from radar.errors import InvalidStatusTransition, StoreError
from radar.models import EventRecord, EventStatus, can_transition

logger = logging.getLogger(__name__)

EVENT_KEY = "radar:event:{id}"
ALL_IDS_KEY = "radar:events"
DATE_INDEX_KEY = "radar:events:by-date:{date}"
ID_DATES_KEY = "radar:events:dates"


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        logger.error("Store %s failed: %s", operation, exc)
        raise StoreError(f"store {operation} failed: {exc}") from exc


def encode_record(record: EventRecord) -> dict[str, str]:
    """Flatten a record into Redis hash fields (all strings)."""
    data = record.model_dump(mode="json", by_alias=True, exclude_none=True)
    out: dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, (list, dict)):
            out[key] = json.dumps(value, ensure_ascii=False)
        else:
            out[key] = str(value)
    return out


def legacy_status(data: dict[str, Any]) -> str:
    """Derive ``status`` for hashes written before the status field existed."""
    if data.get("status"):
        return data["status"]
    if str(data.get("rejected")).lower() == "true":
        return EventStatus.REJECTED.value
    if str(data.get("reviewed")).lower() == "true" or str(data.get("approved")).lower() == "true":
        return EventStatus.APPROVED.value
    return EventStatus.PENDING.value


def decode_record(data: dict[str, str]) -> EventRecord | None:
    """Rebuild a record from a hash, or ``None`` if the hash is unusable."""
    if not data:
        return None
    fields: dict[str, Any] = dict(data)
    tags = fields.get("tags")
    if isinstance(tags, str):
        try:
            fields["tags"] = json.loads(tags) if tags.startswith("[") else tags.split(",")
        except json.JSONDecodeError:
            fields["tags"] = [t for t in tags.strip("[]").split(",") if t]
    fields["status"] = legacy_status(fields)
    fields.setdefault("source", "unknown")
    try:
        return EventRecord.model_validate(fields)
    except ValidationError as exc:
        logger.warning("Unreadable event hash %s: %s", data.get("id"), exc.errors()[:1])
        return None


class EventStore:
    """Persistence for :class:`EventRecord` plus its id/date index sets.

    Only ingestion pipelines call :meth:`put`/:meth:`put_if_absent`; only the
    cleanup sweep calls :meth:`remove`.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> EventStore:
        return cls(aioredis.from_url(url, encoding="utf-8", decode_responses=True))

    @property
    def redis(self) -> aioredis.Redis:
        return self._redis

    async def close(self) -> None:
        await self._redis.aclose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, record: EventRecord) -> None:
        """Upsert *record* and index it. No validation happens here."""
        with _store_errors("put"):
            await self._redis.hset(EVENT_KEY.format(id=record.id), mapping=encode_record(record))
            await self._index(record)

    async def put_if_absent(self, record: EventRecord) -> bool:
        """Create *record* unless its id already exists.

        The ``id`` hash field is claimed with HSETNX, so of two concurrent
        writers for the same identity exactly one gets ``True``.
        """
        key = EVENT_KEY.format(id=record.id)
        with _store_errors("put_if_absent"):
            claimed = await self._redis.hsetnx(key, "id", record.id)
            if not claimed:
                return False
            await self._redis.hset(key, mapping=encode_record(record))
            await self._index(record)
        return True

    async def _index(self, record: EventRecord) -> None:
        await self._redis.hset(ID_DATES_KEY, record.id, record.date.isoformat())
        await self._redis.sadd(ALL_IDS_KEY, record.id)
        await self._redis.sadd(DATE_INDEX_KEY.format(date=record.date.isoformat()), record.id)

    async def remove(self, event_id: str) -> bool:
        """Delete a record and its index entries. Missing ids are a no-op.

        Returns whether a record hash was actually deleted.
        """
        key = EVENT_KEY.format(id=event_id)
        with _store_errors("remove"):
            date = await self._redis.hget(key, "date")
            if not date:
                # Orphaned id: the hash is gone but the date index may still hold it.
                date = await self._redis.hget(ID_DATES_KEY, event_id)
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.srem(ALL_IDS_KEY, event_id)
                pipe.hdel(ID_DATES_KEY, event_id)
                if date:
                    pipe.srem(DATE_INDEX_KEY.format(date=date), event_id)
                deleted, *_ = await pipe.execute()
        return bool(deleted)

    async def set_status(self, event_id: str, status: EventStatus) -> EventRecord | None:
        """Move a pending record to ``approved`` or ``rejected``.

        Returns ``None`` for unknown ids; raises
        :class:`InvalidStatusTransition` when the record is already terminal.
        """
        record = await self.get(event_id)
        if record is None:
            return None
        if not can_transition(record.status, status):
            raise InvalidStatusTransition(event_id, record.status.value, status.value)

        now = dt.datetime.now(dt.timezone.utc)
        updates = {"status": status.value, "statusUpdatedAt": now.isoformat()}
        if status is EventStatus.APPROVED:
            updates["approvedAt"] = now.isoformat()
        else:
            updates["rejectedAt"] = now.isoformat()

        with _store_errors("set_status"):
            await self._redis.hset(EVENT_KEY.format(id=event_id), mapping=updates)
        return record.model_copy(
            update={
                "status": status,
                "status_updated_at": now,
                "approved_at": now if status is EventStatus.APPROVED else record.approved_at,
                "rejected_at": now if status is EventStatus.REJECTED else record.rejected_at,
            }
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, event_id: str) -> EventRecord | None:
        with _store_errors("get"):
            data = await self._redis.hgetall(EVENT_KEY.format(id=event_id))
        return decode_record(data)

    async def exists(self, event_id: str) -> bool:
        with _store_errors("exists"):
            return bool(await self._redis.exists(EVENT_KEY.format(id=event_id)))

    async def ids(self) -> list[str]:
        with _store_errors("ids"):
            members = await self._redis.smembers(ALL_IDS_KEY)
        return sorted(members)

    async def count(self) -> int:
        with _store_errors("count"):
            return await self._redis.scard(ALL_IDS_KEY)

    async def ids_for_date(self, date: dt.date | str) -> list[str]:
        day = date.isoformat() if isinstance(date, dt.date) else date
        with _store_errors("ids_for_date"):
            members = await self._redis.smembers(DATE_INDEX_KEY.format(date=day))
        return sorted(members)

    async def iter_raw(self) -> AsyncIterator[tuple[str, dict[str, str]]]:
        """Yield ``(id, hash)`` for every indexed id, including empty hashes."""
        for event_id in await self.ids():
            with _store_errors("hgetall"):
                data = await self._redis.hgetall(EVENT_KEY.format(id=event_id))
            yield event_id, data

    async def list_all(self) -> AsyncIterator[EventRecord]:
        """Yield every readable record. Re-reads the id set on each call."""
        async for _, data in self.iter_raw():
            record = decode_record(data)
            if record is not None:
                yield record
