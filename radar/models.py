"""Shared Pydantic models for KINN RADAR."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_TIME = "18:00"
DEFAULT_CITY = "Innsbruck"
DESCRIPTION_MAX_LENGTH = 200


class EventCategory(str, Enum):
    AI = "AI"
    TECH = "Tech"
    STARTUP = "Startup"
    INNOVATION = "Innovation"
    BUSINESS = "Business"
    EDUCATION = "Education"
    OTHER = "Other"


class EventLanguage(str, Enum):
    DE = "de"
    EN = "en"
    MIXED = "mixed"


class EventStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def can_transition(current: EventStatus, target: EventStatus) -> bool:
    """Only pending records move, and only to a terminal state."""
    return current is EventStatus.PENDING and target is not EventStatus.PENDING


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CandidateEvent(_CamelModel):
    """An LLM-extracted event, not yet validated.

    Every field is optional here: the extraction adapter and the validator
    decide what is good enough to keep.
    """

    title: str | None = None
    date: str | None = None
    time: str | None = None
    end_time: str | None = None
    location: str | None = None
    address: str | None = None
    city: str | None = None
    category: EventCategory | None = None
    description: str | None = None
    registration_url: str | None = None
    detail_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    language: EventLanguage | None = None

    @field_validator(
        "title", "date", "time", "end_time", "location", "address", "city",
        "description", "registration_url", "detail_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        for member in EventCategory:
            if str(value).strip().lower() == member.value.lower():
                return member
        return EventCategory.OTHER

    @field_validator("language", mode="before")
    @classmethod
    def _coerce_language(cls, value: Any) -> Any:
        if not value:
            return None
        value = str(value).strip().lower()
        return value if value in {m.value for m in EventLanguage} else None

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(t) for t in value if t]
        return []

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, value: str | None) -> str | None:
        return value[:DESCRIPTION_MAX_LENGTH] if value else value


class EventRecord(_CamelModel):
    """A persisted event, keyed by its derived identity."""

    id: str
    title: str
    date: dt.date
    time: str = DEFAULT_TIME
    end_time: str | None = None
    location: str | None = None
    address: str | None = None
    city: str = DEFAULT_CITY
    category: EventCategory | None = None
    description: str | None = None
    registration_url: str | None = None
    detail_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    language: EventLanguage | None = None
    source: str
    status: EventStatus = EventStatus.PENDING
    approved_at: dt.datetime | None = None
    rejected_at: dt.datetime | None = None
    created_at: dt.datetime | None = None
    status_updated_at: dt.datetime | None = None

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, value: str | None) -> str | None:
        return value[:DESCRIPTION_MAX_LENGTH] if value else value

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SourceDescriptor(BaseModel):
    """Configuration for one scrape target."""

    name: str
    url: str
    fetch_type: str = "static"
    priority: str = "medium"
    active: bool = True
    html_pattern: str | None = None
    date_format: str | None = None
    extract_notes: str | None = None
    instructions: str | None = None
    max_chars: int | None = None
    check_relevance: bool = False

    @property
    def has_hints(self) -> bool:
        return bool(self.html_pattern or self.date_format or self.extract_notes)


class ValidationResult(BaseModel):
    is_valid: bool = True
    reasons: list[str] = Field(default_factory=list)

    def fail(self, reason: str) -> None:
        self.is_valid = False
        self.reasons.append(reason)


class IngestResult(BaseModel):
    """Outcome of one ingestion run for a single source or newsletter."""

    source: str
    success: bool = True
    found: int = 0
    added: int = 0
    rejected: int = 0
    duplicates: int = 0
    test_mode: bool = False
    events: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None


class SweepResult(BaseModel):
    total_scanned: int = 0
    removed: int = 0
    kept: int = 0
    removed_ids: list[str] = Field(default_factory=list)
    dry_run: bool = False


class PruneResult(BaseModel):
    total_scanned: int = 0
    removed: int = 0
    removed_ids: list[str] = Field(default_factory=list)
    dry_run: bool = False


class SheetsSyncResult(BaseModel):
    """What a Sheets sync wrote. Archive and statistics are best-effort."""

    upcoming: int = 0
    archived: int = 0
    archive_written: bool = False
    statistics_written: bool = False
