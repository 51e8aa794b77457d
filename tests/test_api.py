"""Tests for the HTTP API."""
import datetime as dt

import httpx
import pytest

from api.main import create_app
from radar.models import EventStatus, SourceDescriptor
from radar.notify import EmailNotifier
from radar.services import Services
from radar.source_config import StaticSourceConfigProvider


def make_services(settings, store, llm, descriptors=(), sheets=None):
    return Services(
        settings=settings,
        store=store,
        llm=llm,
        notifier=EmailNotifier(settings),
        sheets=sheets,
        source_config=StaticSourceConfigProvider(descriptors),
    )


@pytest.fixture
def services(settings, store, stub_llm):
    return make_services(settings, store, stub_llm, [SourceDescriptor(name="FH Kufstein", url="")])


@pytest.fixture
async def client(services):
    transport = httpx.ASGITransport(app=create_app(services))
    async with httpx.AsyncClient(transport=transport, base_url="http://radar.test") as c:
        yield c


def inbound_payload(**data):
    body = {"email_id": "em_1", "from": "AI Austria <hello@aiaustria.com>", "to": ["radar@kinn.at"], "html": "<p>x</p>"}
    body.update(data)
    return {"type": "email.received", "data": body}


class TestHealth:
    async def test_ok(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "events": 0}


class TestInbound:
    """Webhook status codes."""

    async def test_ignored_type(self, client):
        resp = await client.post("/api/radar/inbound", json={"type": "email.bounced", "data": {}})
        assert resp.status_code == 200
        assert resp.json()["ignored"] is True

    async def test_invalid_payload_still_200(self, client):
        resp = await client.post("/api/radar/inbound", json={"type": "email.received"})
        assert resp.status_code == 200
        assert resp.json()["success"] is False

    async def test_non_json_body(self, client):
        resp = await client.post("/api/radar/inbound", content=b"hello", headers={"Content-Type": "text/plain"})
        assert resp.status_code == 200
        assert resp.json()["error"] == "invalid_json"

    async def test_events_stored(self, client, stub_llm, future_date):
        stub_llm.queue([{"title": "LLM Night", "date": future_date(), "city": "Innsbruck"}])

        resp = await client.post("/api/radar/inbound", json=inbound_payload())

        body = resp.json()
        assert resp.status_code == 200
        assert body["added"] == 1
        event_id = body["events"][0]["id"]
        event = (await client.get(f"/api/radar/events/{event_id}")).json()["event"]
        assert event["source"] == "aiaustria"
        assert event["status"] == "pending"

    async def test_store_outage_is_503(self, settings, failing_store, stub_llm, future_date):
        stub_llm.queue([{"title": "LLM Night", "date": future_date(), "city": "Innsbruck"}])
        services = make_services(settings, failing_store, stub_llm)
        transport = httpx.ASGITransport(app=create_app(services))
        async with httpx.AsyncClient(transport=transport, base_url="http://radar.test") as c:
            resp = await c.post("/api/radar/inbound", json=inbound_payload())
        assert resp.status_code == 503
        assert resp.json()["success"] is False


class TestExtract:
    async def test_unknown_source_is_404(self, client):
        resp = await client.post("/api/radar/extract", json={"source": "Nope"})
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "source_not_found", "message": "Unknown source: 'Nope'"}

    async def test_dynamic_without_url_is_400(self, client):
        resp = await client.post("/api/radar/extract-dynamic", json={"source": "FH Kufstein"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "source_misconfigured"

    async def test_missing_body_field_is_422(self, client):
        resp = await client.post("/api/radar/extract", json={})
        assert resp.status_code == 422


class TestCleanup:
    async def test_before_and_after_counts(self, client, store, make_record):
        await store.put(make_record(id="a"))
        await store.put(make_record(id="b"))

        resp = await client.post("/api/radar/cleanup", json={"dryRun": False})

        body = resp.json()
        assert (body["before"], body["after"], body["removed"]) == (2, 1, 1)

    async def test_cleanup_past_dry_run(self, client, store, make_record):
        await store.put(make_record(id="old", date=dt.date(2020, 1, 1)))

        body = (await client.post("/api/radar/cleanup-past", json={"dryRun": True})).json()

        assert body["removed_ids"] == ["old"]
        assert body["after"] == 1
        assert body["sheets"] is None

    async def test_resync_sheets_after_cleanup(self, settings, store, stub_llm, sheets, make_record, respx_mock):
        await store.put(make_record(id="a"))
        await store.put(make_record(id="b"))
        respx_mock.post(url__regex=r".*/values/.*clear").mock(return_value=httpx.Response(200, json={}))
        writes = respx_mock.put(url__regex=r".*/values/.*").mock(return_value=httpx.Response(200, json={}))
        app = create_app(make_services(settings, store, stub_llm, sheets=sheets))

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://radar.test") as c:
            body = (await c.post("/api/radar/cleanup", json={"resyncSheets": True})).json()

        assert body["after"] == 1
        assert body["sheets"]["archived"] == 1
        assert writes.call_count == 3

    async def test_failed_resync_keeps_cleanup_result(self, settings, store, stub_llm, sheets, make_record, respx_mock):
        await store.put(make_record(id="a"))
        await store.put(make_record(id="b"))
        respx_mock.post(url__regex=r".*/values/.*clear").mock(return_value=httpx.Response(503))
        app = create_app(make_services(settings, store, stub_llm, sheets=sheets))

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://radar.test") as c:
            resp = await c.post("/api/radar/cleanup", json={"resyncSheets": True})

        assert resp.status_code == 200
        assert resp.json()["removed"] == 1
        assert resp.json()["sheets"] is None


class TestReviewAndViews:
    async def test_review_then_calendar_and_ics(self, client, store, make_record, future_date):
        day = dt.date.fromisoformat(future_date(10))
        await store.put(make_record(id="a", date=day))

        resp = await client.post("/api/radar/events/review", json={"ids": ["a", "ghost"], "action": "approve"})
        body = resp.json()
        assert body["updated"] == ["a"]
        assert body["errors"] == {"ghost": "not found"}
        assert (await store.get("a")).status is EventStatus.APPROVED

        again = (await client.post("/api/radar/events/review", json={"ids": ["a"], "action": "reject"})).json()
        assert again["success"] is False
        assert "a" in again["errors"]

        calendar = (await client.get("/api/radar/calendar", params={"year": day.year})).json()
        assert calendar["totalEvents"] == 1

        ics = await client.get("/api/radar/calendar.ics")
        assert ics.headers["content-type"].startswith("text/calendar")
        assert "UID:a@radar.kinn.at" in ics.text

    async def test_bad_review_action_is_422(self, client):
        resp = await client.post("/api/radar/events/review", json={"ids": ["a"], "action": "delete"})
        assert resp.status_code == 422

    async def test_metrics(self, client, store, make_record):
        await store.put(make_record(id="a"))
        body = (await client.get("/api/radar/metrics")).json()
        assert body["success"] is True
        assert body["status"]["pending"] == 1

    async def test_unknown_event_is_404(self, client):
        resp = await client.get("/api/radar/events/nope")
        assert resp.status_code == 404

    async def test_sheets_sync_unconfigured(self, client):
        resp = await client.post("/api/radar/sheets-sync")
        assert resp.status_code == 400
