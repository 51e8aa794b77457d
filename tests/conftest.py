"""Shared fixtures: in-memory Redis, settings, a scripted LLM, a Sheets client and record factories."""

import datetime as dt
import json

import pytest
from fakeredis import FakeAsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError

from radar.config import Settings
from radar.extraction import ExtractionAdapter
from radar.metrics import MetricsCollector
from radar.models import EventCategory, EventRecord, EventStatus
from radar.sheets import SheetsClient
from radar.store import EventStore


class StubLLM:
    """Returns queued completions in order and remembers every prompt."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, payload):
        self.responses.append(payload if isinstance(payload, str) else json.dumps(payload))

    async def complete_json(self, messages):
        self.calls.append(messages)
        if not self.responses:
            return '{"events": []}'
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeCredentials:
    """Service-account credentials that are always fresh."""

    valid = True
    token = "ya29.test"


class FailingRedis:
    """Stands in for a Redis that is down: every command raises."""

    def __getattr__(self, name):
        async def _fail(*args, **kwargs):
            raise RedisConnectionError("connection refused")

        return _fail


@pytest.fixture
def settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        redis_url="redis://fake",
        llm_api_key="test-key",
        resend_api_key=None,
        notify_email=None,
        google_service_account_key=None,
        google_sheet_id=None,
    )


@pytest.fixture
async def redis_client():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def store(redis_client):
    return EventStore(redis_client)


@pytest.fixture
def failing_store():
    return EventStore(FailingRedis())


@pytest.fixture
def metrics(redis_client):
    return MetricsCollector(redis_client)


@pytest.fixture
async def sheets():
    client = SheetsClient("sheet123", FakeCredentials())
    yield client
    await client.aclose()


@pytest.fixture
def stub_llm():
    return StubLLM()


@pytest.fixture
def extractor(stub_llm, settings):
    return ExtractionAdapter(stub_llm, settings)


@pytest.fixture
def make_record():
    """Factory for stored records with sensible defaults."""

    def _make(**overrides):
        data = {
            "id": "ki-meetup-2026-05-01-die-bckerei",
            "title": "KI Meetup",
            "date": dt.date(2026, 5, 1),
            "location": "Die Bäckerei",
            "city": "Innsbruck",
            "category": EventCategory.AI,
            "source": "Die Bäckerei",
            "status": EventStatus.PENDING,
            "created_at": dt.datetime(2026, 4, 1, 12, 0, tzinfo=dt.timezone.utc),
        }
        data.update(overrides)
        return EventRecord(**data)

    return _make


@pytest.fixture
def future_date():
    """ISO date *days* from today, inside the extraction window."""

    def _future(days=30):
        return (dt.date.today() + dt.timedelta(days=days)).isoformat()

    return _future
