"""Identity keys for duplicate detection."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_WHITESPACE = re.compile(r"\s+")
_NOT_KEY_CHAR = re.compile(r"[^a-z0-9-]")


def normalize(text: str) -> str:
    """Lowercase, whitespace runs to ``-``, drop everything outside ``[a-z0-9-]``."""
    return _NOT_KEY_CHAR.sub("", _WHITESPACE.sub("-", text.lower()))


def event_id(title: str, date: str, location: str | None = None, city: str | None = None) -> str:
    """Derive the store key for an event.

    Two extractions of the same event, from the same or from different
    sources, land on the same key as long as title, date and venue agree
    after normalization. Different events with colliding titles on the same
    day at the same venue collapse too.
    """
    place = location or city or "unknown"
    return normalize(f"{title}-{date}-{place}")


def sweep_key(title: str, date: Any) -> str:
    """Looser ``title|date`` key used by the cleanup sweep (venue ignored)."""
    return f"{title.lower().strip()}|{date}"


def _get(event: Any, name: str) -> Any:
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


def event_id_for(event: Any) -> str:
    """:func:`event_id` for a candidate, record or plain mapping."""
    return event_id(
        str(_get(event, "title") or ""),
        str(_get(event, "date") or ""),
        _get(event, "location"),
        _get(event, "city"),
    )
