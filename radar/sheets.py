"""Google Sheets collaborator: source hints in, reporting tabs out."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
from collections import Counter
from typing import Any

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from radar.config import Settings, get_settings
from radar.errors import SheetsError
from radar.models import SheetsSyncResult

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

EVENT_HEADERS = [
    "ID", "Status", "Title", "Date", "Time", "End Time", "Location", "Address",
    "City", "Description", "Registration URL", "Language", "Tags", "Source",
    "Created At",
]
ARCHIVE_HEADERS = EVENT_HEADERS + ["Timing"]

EVENTS_TAB = "Events"
ARCHIVE_TAB = "Archive"
STATISTICS_TAB = "Statistics"


class SheetsClient:
    """Minimal async wrapper over the Sheets v4 ``values`` endpoints."""

    def __init__(
        self,
        sheet_id: str,
        credentials: Any,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.sheet_id = sheet_id
        self._credentials = credentials
        self._http = http or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SheetsClient | None:
        """Build a client, or ``None`` when Sheets is not configured."""
        settings = settings or get_settings()
        if not settings.google_service_account_key or not settings.google_sheet_id:
            return None
        info = json.loads(settings.google_service_account_key)
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        return cls(settings.google_sheet_id, credentials)

    async def _headers(self) -> dict[str, str]:
        if not self._credentials.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._credentials.refresh, Request())
        return {"Authorization": f"Bearer {self._credentials.token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{SHEETS_API}/{self.sheet_id}/values/{path}"
        try:
            resp = await self._http.request(method, url, headers=await self._headers(), **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SheetsError(f"Sheets {method} {path} failed: {exc}") from exc
        return resp.json() if resp.content else {}

    async def get_values(self, range_: str) -> list[list[str]]:
        data = await self._request("GET", range_)
        return data.get("values", [])

    async def clear(self, range_: str) -> None:
        await self._request("POST", f"{range_}:clear")

    async def update(self, range_: str, values: list[list[Any]]) -> None:
        await self._request(
            "PUT",
            range_,
            params={"valueInputOption": "RAW"},
            json={"values": values},
        )

    async def aclose(self) -> None:
        await self._http.aclose()


def event_row(record: Any) -> list[str]:
    return [
        record.id,
        record.status.value,
        record.title,
        record.date.isoformat(),
        record.time or "",
        record.end_time or "",
        record.location or "",
        record.address or "",
        record.city or "",
        record.description or "",
        record.registration_url or record.detail_url or "",
        record.language.value if record.language else "",
        ", ".join(record.tags),
        record.source,
        record.created_at.isoformat() if record.created_at else "",
    ]


def statistics_rows(
    records: list[Any],
    summary: dict[str, Any],
    today: dt.date,
    now: dt.datetime,
) -> list[list[Any]]:
    upcoming = [r for r in records if r.date >= today]
    this_week = [r for r in upcoming if r.date <= today + dt.timedelta(days=7)]
    status = summary["status"]
    total = summary["total"]
    stamp = now.isoformat(timespec="seconds")

    rows: list[list[Any]] = [
        ["Metric", "Value", "Last Updated"],
        ["Total Events", len(records), stamp],
        ["Upcoming Events", len(upcoming), stamp],
        ["This Week", len(this_week), stamp],
        ["Past Events", len(records) - len(upcoming), stamp],
        ["", "", ""],
        ["Pending Review", status["pending"], stamp],
        ["Approved", status["approved"], stamp],
        ["Rejected", status["rejected"], stamp],
        ["Approval Rate (%)", status["approvalRate"], stamp],
        ["", "", ""],
        ["Newsletters Processed", total["newsletters"], stamp],
        ["Events Found", total["found"], stamp],
        ["Events Added", total["added"], stamp],
        ["Events Rejected", total["rejected"], stamp],
        ["Duplicates Skipped", total["duplicates"], stamp],
        ["", "", ""],
        ["Source", "Events", ""],
    ]
    for source, count in sorted(Counter(r.source or "unknown" for r in records).items()):
        rows.append([source, count, stamp])
    return rows


async def _write_tab(sheets: SheetsClient, tab: str, columns: str, rows: list[list[Any]]) -> None:
    await sheets.clear(f"{tab}!{columns}")
    await sheets.update(f"{tab}!A1", rows)


async def sync_events(
    store: Any,
    sheets: SheetsClient,
    metrics: Any,
    *,
    today: dt.date | None = None,
) -> SheetsSyncResult:
    """Rewrite the reporting tabs from the store.

    ``Events`` holds upcoming records, soonest first; a failure there raises
    :class:`SheetsError`. ``Archive`` (every record, with a past/upcoming
    column) and ``Statistics`` are logged and skipped when the write fails.
    """
    today = today or dt.date.today()
    now = dt.datetime.now(dt.timezone.utc)
    records = [record async for record in store.list_all()]
    records.sort(key=lambda r: (r.date, r.time or "", r.id))
    upcoming = [r for r in records if r.date >= today]
    result = SheetsSyncResult(upcoming=len(upcoming), archived=len(records))

    await _write_tab(sheets, EVENTS_TAB, "A:O", [EVENT_HEADERS] + [event_row(r) for r in upcoming])

    archive = [ARCHIVE_HEADERS] + [
        event_row(r) + ["upcoming" if r.date >= today else "past"] for r in records
    ]
    try:
        await _write_tab(sheets, ARCHIVE_TAB, "A:P", archive)
        result.archive_written = True
    except SheetsError as exc:
        logger.warning("Archive tab not updated: %s", exc)

    try:
        summary = await metrics.summary(store, today)
        await _write_tab(sheets, STATISTICS_TAB, "A:C", statistics_rows(records, summary, today, now))
        result.statistics_written = True
    except SheetsError as exc:
        logger.warning("Statistics tab not updated: %s", exc)

    logger.info(
        "Synced %d upcoming and %d archived events to Sheets", result.upcoming, result.archived,
        extra={"upcoming": result.upcoming, "archived": result.archived},
    )
    return result
