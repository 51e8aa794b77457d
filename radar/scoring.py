"""Completeness score: how much useful data a record carries.

Used by the cleanup sweep to decide which of several duplicates survives.
Default values (``18:00``, ``Innsbruck``) mean "nothing was extracted" and
earn no points.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from radar.models import DEFAULT_CITY, DEFAULT_TIME

WEIGHTS = {
    "title": 3,
    "date": 3,
    "time": 2,
    "location": 2,
    "detailUrl": 2,
    "registrationUrl": 1,
    "city": 1,
    "category": 1,
    "source": 1,
    "description": 1,
}

_SNAKE = {"detailUrl": "detail_url", "registrationUrl": "registration_url"}


def _field(event: Any, name: str) -> Any:
    if isinstance(event, Mapping):
        value = event.get(name)
        if value is None and name in _SNAKE:
            value = event.get(_SNAKE[name])
        return value
    return getattr(event, _SNAKE.get(name, name), None)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if hasattr(value, "value"):
        value = value.value
    return str(value).strip() != ""


def score(event: Any) -> int:
    """Score an :class:`~radar.models.EventRecord` or a raw stored mapping.

    Never raises; missing or odd-typed fields simply add nothing.
    """
    total = 0
    for name in ("title", "date", "location", "detailUrl", "registrationUrl", "category", "source"):
        if _present(_field(event, name)):
            total += WEIGHTS[name]

    time = _field(event, "time")
    if _present(time) and str(time).strip() != DEFAULT_TIME:
        total += WEIGHTS["time"]

    city = _field(event, "city")
    if _present(city) and str(city).strip() != DEFAULT_CITY:
        total += WEIGHTS["city"]

    description = _field(event, "description")
    if _present(description):
        length = len(str(description))
        total += WEIGHTS["description"]
        if length > 100:
            total += 1
        if length > 200:
            total += 1

    return total
