"""Tests for newsletter ingestion."""
import httpx
import pytest

from radar.errors import InvalidPayload
from radar.metrics import GLOBAL_KEY
from radar.newsletter import NewsletterPipeline, is_radar_recipient, source_from_sender


def webhook(**data):
    body = {
        "email_id": "em_123",
        "from": "Startup Tirol <news@startup.tirol>",
        "to": ["radar@kinn.at"],
        "subject": "Events im März",
        "html": "<p>KI Stammtisch</p>",
    }
    body.update(data)
    return {"type": "email.received", "data": body}


@pytest.fixture
def newsletter(store, metrics, extractor, settings):
    return NewsletterPipeline(store, metrics, extractor, settings)


class TestHelpers:
    def test_source_from_sender(self):
        assert source_from_sender("Startup Tirol <news@startup.tirol>") == "startup"
        assert source_from_sender("info@inncubator.at") == "inncubator"
        assert source_from_sender("no address") == "newsletter"
        assert source_from_sender(None) == "newsletter"

    def test_recipient_alias(self):
        assert is_radar_recipient(["hello@kinn.at", "RADAR@kinn.at"], "radar")
        assert is_radar_recipient("radar@kinn.at", "radar")
        assert not is_radar_recipient(["hello@kinn.at"], "radar")
        assert not is_radar_recipient(None, "radar")


class TestNewsletterPipeline:
    """Tests for NewsletterPipeline.handle."""

    async def test_ignores_other_webhook_types(self, newsletter, stub_llm):
        outcome = await newsletter.handle({"type": "email.delivered", "data": {}})
        assert outcome.ignored
        assert stub_llm.calls == []

    async def test_ignores_mail_for_other_recipients(self, newsletter, stub_llm):
        outcome = await newsletter.handle(webhook(to=["hello@kinn.at"]))
        assert outcome.ignored
        assert outcome.reason == "not_radar_recipient"
        assert stub_llm.calls == []

    async def test_missing_data_is_invalid(self, newsletter):
        with pytest.raises(InvalidPayload):
            await newsletter.handle({"type": "email.received"})

    async def test_strict_rules_and_sender_source(self, newsletter, stub_llm, store, redis_client, future_date):
        stub_llm.queue({
            "events": [
                {"title": "KI Stammtisch", "date": future_date(), "location": "Innsbruck", "description": "Kostenlos"},
                {"title": "Gründerfrühstück", "date": future_date(), "location": "Innsbruck"},
            ]
        })

        outcome = await newsletter.handle(webhook())

        result = outcome.result
        assert (result.found, result.added, result.rejected) == (2, 1, 1)
        [record] = [r async for r in store.list_all()]
        assert record.title == "KI Stammtisch"
        assert record.source == "startup"
        assert await redis_client.hget(GLOBAL_KEY, "newsletters") == "1"
        assert "<p>KI Stammtisch</p>" in stub_llm.calls[0][1]["content"]

    async def test_fetches_full_body_from_resend(self, store, metrics, extractor, stub_llm, settings, respx_mock):
        settings.resend_api_key = "re_test"
        route = respx_mock.get(f"{settings.resend_base_url}/emails/receiving/em_123").mock(
            return_value=httpx.Response(200, json={"html": "<p>Full newsletter body</p>"})
        )

        await NewsletterPipeline(store, metrics, extractor, settings).handle(webhook())

        assert route.called
        assert route.calls.last.request.headers["Authorization"] == "Bearer re_test"
        assert "Full newsletter body" in stub_llm.calls[0][1]["content"]

    async def test_falls_back_to_inline_body(self, store, metrics, extractor, stub_llm, settings, respx_mock):
        settings.resend_api_key = "re_test"
        respx_mock.get(f"{settings.resend_base_url}/emails/receiving/em_123").mock(
            return_value=httpx.Response(500)
        )

        await NewsletterPipeline(store, metrics, extractor, settings).handle(webhook())

        assert "<p>KI Stammtisch</p>" in stub_llm.calls[0][1]["content"]

    async def test_extraction_failure_adds_nothing(self, newsletter, stub_llm, store):
        stub_llm.queue("not json at all")
        outcome = await newsletter.handle(webhook())
        assert outcome.result.found == 0
        assert await store.count() == 0
