"""Startup.Tirol – The Events Calendar (WordPress) with a REST API."""

from __future__ import annotations

import datetime as dt
import json
import logging

from bs4 import BeautifulSoup

from radar.base import PageSource, register
from radar.errors import FetchError

logger = logging.getLogger(__name__)


@register
class StartupTirolSource(PageSource):
    name = "Startup.Tirol"
    url = "https://www.startup.tirol/events/"
    fetch_type = "wordpress-api"
    priority = "high"
    max_chars = 25_000

    API_URL = "https://www.startup.tirol/wp-json/tribe/events/v1/events"

    instructions = """
        Content is either a JSON list from The Events Calendar API or the
        events page HTML (.tribe-events-list items, dates in
        .tribe-event-date-start). Most events are FREE startup events across
        Tirol: pitches, workshops, networking, Stammtisch.
    """

    async def content(self) -> str:
        # Strategy 1: the plugin's REST API, compact and already structured
        try:
            resp = await self.fetch(
                self.API_URL,
                params={"per_page": 50, "start_date": dt.date.today().isoformat()},
            )
            events = self._from_api(resp.json())
            if events:
                return json.dumps(events, ensure_ascii=False)
        except (FetchError, ValueError) as exc:
            logger.info("[%s] API unavailable, falling back to HTML: %s", self.name, exc)

        # Strategy 2: the rendered events page
        return await super().content()

    @staticmethod
    def _from_api(data: dict) -> list[dict]:
        events: list[dict] = []
        for item in data.get("events", []) if isinstance(data, dict) else []:
            venue = item.get("venue") or {}
            description = BeautifulSoup(item.get("description") or "", "html.parser").get_text(" ", strip=True)
            events.append(
                {
                    "title": item.get("title"),
                    "start": item.get("start_date"),
                    "end": item.get("end_date"),
                    "venue": venue.get("venue") if isinstance(venue, dict) else None,
                    "address": venue.get("address") if isinstance(venue, dict) else None,
                    "city": venue.get("city") if isinstance(venue, dict) else None,
                    "cost": item.get("cost"),
                    "url": item.get("url"),
                    "description": description[:400],
                }
            )
        return events
