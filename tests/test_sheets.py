"""Tests for the Sheets client, the sheet-backed source config and the events sync."""
import datetime as dt
import json

import httpx
import pytest

from radar.errors import SheetsError
from radar.models import EventStatus, SourceDescriptor
from radar.sheets import ARCHIVE_HEADERS, EVENT_HEADERS, SheetsClient, sync_events
from radar.source_config import SheetsSourceConfigProvider, StaticSourceConfigProvider

SOURCES_TAB = [
    ["Source", "Active", "URL", "Extract Notes", "HTML Pattern", "Date Format"],
    ["FH Kufstein", "TRUE", "https://www.fh-kufstein.ac.at/events", "Only public talks", "div.event", "DD.MM.YYYY"],
    ["No URL", "TRUE"],
]


class TestSheetsSourceConfigProvider:
    """Tests for SheetsSourceConfigProvider."""

    async def test_reads_columns_by_header(self, sheets, respx_mock):
        route = respx_mock.get(url__regex=r".*/values/Sources.*").mock(
            return_value=httpx.Response(200, json={"values": SOURCES_TAB})
        )

        descriptor = await SheetsSourceConfigProvider(sheets).get("FH Kufstein")

        assert descriptor.url == "https://www.fh-kufstein.ac.at/events"
        assert descriptor.html_pattern == "div.event"
        assert descriptor.date_format == "DD.MM.YYYY"
        assert descriptor.extract_notes == "Only public talks"
        assert route.calls.last.request.headers["Authorization"] == "Bearer ya29.test"

    async def test_short_rows_and_unknown_names(self, sheets, respx_mock):
        respx_mock.get(url__regex=r".*/values/Sources.*").mock(
            return_value=httpx.Response(200, json={"values": SOURCES_TAB})
        )
        provider = SheetsSourceConfigProvider(sheets)

        no_url = await provider.get("No URL")
        assert no_url.url == ""
        assert no_url.html_pattern is None
        assert await provider.get("Missing") is None

    async def test_sheets_error_reads_as_unknown(self, sheets, respx_mock):
        respx_mock.get(url__regex=r".*/values/Sources.*").mock(return_value=httpx.Response(403))
        assert await SheetsSourceConfigProvider(sheets).get("FH Kufstein") is None

    async def test_static_provider(self):
        provider = StaticSourceConfigProvider([SourceDescriptor(name="X", url="https://x")])
        assert (await provider.get("X")).url == "https://x"
        assert await provider.get("Y") is None


class TestSheetsClient:
    async def test_http_errors_raise_sheets_error(self, sheets, respx_mock):
        respx_mock.get(url__regex=r".*/values/.*").mock(return_value=httpx.Response(500))
        with pytest.raises(SheetsError):
            await sheets.get_values("Events!A:O")

    def test_unconfigured_settings_give_no_client(self, settings):
        assert SheetsClient.from_settings(settings) is None


TODAY = dt.date(2026, 3, 1)


def written_rows(route):
    return json.loads(route.calls.last.request.content)["values"]


def mock_tab(respx_mock, tab, status=200):
    clear = respx_mock.post(url__regex=rf".*/values/{tab}.*clear").mock(return_value=httpx.Response(status, json={}))
    if status != 200:
        # the write never follows a failed clear
        return clear, None
    update = respx_mock.put(url__regex=rf".*/values/{tab}.*").mock(return_value=httpx.Response(status, json={}))
    return clear, update


class TestSyncEvents:
    """Tests for sync_events."""

    @pytest.fixture
    async def stored(self, store, make_record):
        await store.put(make_record(id="past", date=dt.date(2026, 1, 15)))
        await store.put(make_record(id="later", date=dt.date(2026, 6, 1), status=EventStatus.APPROVED))
        await store.put(make_record(id="soon", date=dt.date(2026, 3, 5)))

    async def test_writes_upcoming_archive_and_statistics(self, sheets, store, metrics, stored, respx_mock):
        events_clear, events = mock_tab(respx_mock, "Events")
        _, archive = mock_tab(respx_mock, "Archive")
        _, statistics = mock_tab(respx_mock, "Statistics")

        result = await sync_events(store, sheets, metrics, today=TODAY)

        assert (result.upcoming, result.archived) == (2, 3)
        assert result.archive_written and result.statistics_written
        assert events_clear.called

        rows = written_rows(events)
        assert rows[0] == EVENT_HEADERS
        assert [row[0] for row in rows[1:]] == ["soon", "later"]
        assert rows[2][1] == "approved"
        assert events.calls.last.request.url.params["valueInputOption"] == "RAW"

        rows = written_rows(archive)
        assert rows[0] == ARCHIVE_HEADERS
        assert [(row[0], row[-1]) for row in rows[1:]] == [("past", "past"), ("soon", "upcoming"), ("later", "upcoming")]

        stats = {row[0]: row[1] for row in written_rows(statistics)}
        assert stats["Total Events"] == 3
        assert stats["Upcoming Events"] == 2
        assert stats["This Week"] == 1
        assert stats["Past Events"] == 1
        assert stats["Approved"] == 1
        assert stats["Pending Review"] == 2
        assert stats["Die Bäckerei"] == 3

    async def test_archive_failure_is_not_fatal(self, sheets, store, metrics, stored, respx_mock):
        mock_tab(respx_mock, "Events")
        mock_tab(respx_mock, "Archive", status=500)
        mock_tab(respx_mock, "Statistics")

        result = await sync_events(store, sheets, metrics, today=TODAY)

        assert not result.archive_written
        assert result.statistics_written

    async def test_events_failure_raises(self, sheets, store, metrics, stored, respx_mock):
        mock_tab(respx_mock, "Events", status=403)
        with pytest.raises(SheetsError):
            await sync_events(store, sheets, metrics, today=TODAY)
