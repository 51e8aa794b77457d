"""Public read views: the year calendar widget data and the ICS feed."""

from __future__ import annotations

import datetime as dt
from collections import Counter
from collections.abc import Iterable
from typing import Any

from radar.models import DEFAULT_CITY, DEFAULT_TIME, EventRecord, EventStatus
from radar.store import EventStore

SOURCE_COLORS = {
    "KINN": "#5ED9A6",
    "InnCubator": "#F59E0B",
    "Startup.Tirol": "#3B82F6",
    "AI Austria": "#8B5CF6",
    "Uni Innsbruck": "#06B6D4",
    "MCI": "#14B8A6",
    "FH Kufstein": "#10B981",
    "Standortagentur Tirol": "#EC4899",
    "DIH West": "#6366F1",
    "Die Bäckerei": "#78716C",
    "Das Wundervoll": "#A855F7",
    "Impact Hub Tirol": "#F97316",
    "WKO Tirol": "#EF4444",
    "LSZ": "#84CC16",
    "Congress Messe Innsbruck": "#0EA5E9",
    "Innsbruck.info": "#FB923C",
}
FALLBACK_COLOR = "#9CA3AF"

WEEKS_PER_GRID = 53
TIMEZONE = "Europe/Vienna"
DEFAULT_DURATION = dt.timedelta(hours=2)
UID_DOMAIN = "radar.kinn.at"


def source_color(source: str | None) -> str:
    return SOURCE_COLORS.get(source or "", FALLBACK_COLOR)


def year_weeks(year: int) -> list[dict[str, Any]]:
    """53 Monday-first weeks starting on the Monday on or before Jan 1."""
    jan1 = dt.date(year, 1, 1)
    current = jan1 - dt.timedelta(days=jan1.weekday())
    weeks = []
    for number in range(1, WEEKS_PER_GRID + 1):
        days = []
        for weekday in range(7):
            days.append({"date": current.isoformat(), "dayOfWeek": weekday, "isInYear": current.year == year})
            current += dt.timedelta(days=1)
        first = dt.date.fromisoformat(days[0]["date"])
        weeks.append({
            "weekNumber": number,
            "days": days,
            "month": first.month - 1,
            "isFirstWeekOfMonth": first.day <= 7,
        })
    return weeks


def _calendar_entry(record: EventRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "time": record.time or DEFAULT_TIME,
        "location": record.location or record.city or "TBA",
        "source": record.source,
        "sourceColor": source_color(record.source),
        "detailUrl": record.detail_url or record.registration_url,
    }


async def build_calendar(store: EventStore, year: int) -> dict[str, Any]:
    """Approved events of *year*, one per ``title|date``, grouped by day."""
    seen: set[str] = set()
    by_day: dict[str, list[dict[str, Any]]] = {}
    by_source: Counter[str] = Counter()

    records = sorted(
        [r async for r in store.list_all() if r.status is EventStatus.APPROVED and r.date.year == year],
        key=lambda r: r.id,
    )
    for record in records:
        key = f"{record.title}|{record.date.isoformat()}".lower()
        if key in seen:
            continue
        seen.add(key)
        source = record.source or "Unbekannt"
        by_source[source] += 1
        by_day.setdefault(record.date.isoformat(), []).append(_calendar_entry(record))

    days = [
        {"date": day, "events": sorted(events, key=lambda e: e["time"])}
        for day, events in sorted(by_day.items())
    ]
    return {
        "year": year,
        "totalEvents": len(seen),
        "bySource": dict(by_source),
        "days": days,
        "weeks": year_weeks(year),
        "sourceColors": {source: source_color(source) for source in by_source},
    }


# ----------------------------------------------------------------------
# ICS
# ----------------------------------------------------------------------

_VTIMEZONE = [
    "BEGIN:VTIMEZONE",
    f"TZID:{TIMEZONE}",
    "BEGIN:DAYLIGHT",
    "TZOFFSETFROM:+0100",
    "TZOFFSETTO:+0200",
    "TZNAME:CEST",
    "DTSTART:19700329T020000",
    "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU",
    "END:DAYLIGHT",
    "BEGIN:STANDARD",
    "TZOFFSETFROM:+0200",
    "TZOFFSETTO:+0100",
    "TZNAME:CET",
    "DTSTART:19701025T030000",
    "RRULE:FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU",
    "END:STANDARD",
    "END:VTIMEZONE",
]


def escape_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold(line: str) -> list[str]:
    """Split a content line into 75-octet chunks, continuations led by a space."""
    out: list[str] = []
    current, size = "", 0
    for char in line:
        width = len(char.encode("utf-8"))
        if size + width > 75:
            out.append(current)
            current, size = " ", 1
        current += char
        size += width
    out.append(current)
    return out


def _parse_time(value: str | None) -> dt.time | None:
    try:
        hour, minute = (int(part) for part in (value or "").split(":")[:2])
        return dt.time(hour, minute)
    except ValueError:
        return None


def _stamp(value: dt.datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def _vevent(record: EventRecord, now: dt.datetime) -> list[str]:
    start_time = _parse_time(record.time) or _parse_time(DEFAULT_TIME)
    start = dt.datetime.combine(record.date, start_time)
    end_time = _parse_time(record.end_time)
    end = dt.datetime.combine(record.date, end_time) if end_time else start + DEFAULT_DURATION
    if end <= start:
        end = start + DEFAULT_DURATION

    city = record.city or DEFAULT_CITY
    description = [record.description or "", f"Location: {record.location or 'TBA'}", f"City: {city}"]
    if record.registration_url:
        description.append(f"Register: {record.registration_url}")

    lines = [
        "BEGIN:VEVENT",
        f"UID:{record.id}@{UID_DOMAIN}",
        f"DTSTAMP:{_stamp(now.astimezone(dt.timezone.utc))}Z",
        f"DTSTART;TZID={TIMEZONE}:{_stamp(start)}",
        f"DTEND;TZID={TIMEZONE}:{_stamp(end)}",
        f"SUMMARY:{escape_text(record.title)}",
        f"DESCRIPTION:{escape_text(chr(10).join(p for p in description if p))}",
    ]
    if record.location:
        parts = [record.location, record.address, city]
        lines.append(f"LOCATION:{escape_text(', '.join(p for p in parts if p))}")
    url = record.registration_url or record.detail_url
    if url:
        lines.append(f"URL:{url}")
    if record.tags:
        lines.append(f"CATEGORIES:{','.join(escape_text(t) for t in record.tags)}")
    lines += ["STATUS:CONFIRMED", f"COMMENT:{escape_text('Source: ' + record.source)}", "END:VEVENT"]
    return lines


def build_ics(records: Iterable[EventRecord], now: dt.datetime | None = None) -> str:
    """Render approved events from today onward as an iCalendar feed."""
    now = now or dt.datetime.now(dt.timezone.utc)
    today = now.date()
    upcoming = sorted(
        (r for r in records if r.status is EventStatus.APPROVED and r.date >= today),
        key=lambda r: (r.date, r.time or DEFAULT_TIME, r.id),
    )

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//KINN//RADAR AI Events Tyrol//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "X-WR-CALNAME:KINN-RADAR",
        f"X-WR-TIMEZONE:{TIMEZONE}",
        "REFRESH-INTERVAL;VALUE=DURATION:PT4H",
        *_VTIMEZONE,
    ]
    for record in upcoming:
        lines.extend(_vevent(record, now))
    lines.append("END:VCALENDAR")

    folded = [chunk for line in lines for chunk in fold(line)]
    return "\r\n".join(folded) + "\r\n"
