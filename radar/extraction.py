"""Turn raw HTML or newsletter bodies into candidate events via the LLM."""

from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Comment
from pydantic import ValidationError

from radar.config import Settings, get_settings
from radar.llm import CompletionClient
from radar.models import CandidateEvent, SourceDescriptor

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...[truncated]"

SYSTEM_PROMPT = (
    "You are an expert at extracting event information from German and English "
    "web pages and newsletters. Follow the given instructions precisely and "
    "answer with JSON only."
)

GENERAL_RULES = """GENERAL RULES:
1. Extract ALL FREE events mentioned
2. If no price mentioned, assume it's FREE
3. Skip events that clearly have a cost (€XX, Ticket price, etc.)
4. Convert dates to YYYY-MM-DD format (e.g. "15. März 2026" -> "2026-03-15")
5. Use 24-hour time format (HH:MM)
6. Default time to 18:00 if not specified
7. Default city to "Innsbruck" if in Tirol but not specified
8. Assign appropriate category based on content

CATEGORIES:
- AI: Artificial Intelligence, Machine Learning, Data Science
- Tech: Programming, Software, DevOps, IT
- Startup: Entrepreneurship, Pitching, Founding
- Innovation: Digital Transformation, Future Tech
- Business: Commerce, Marketing, Management
- Education: Workshops, Courses, Training
- Other: Everything else"""

FALLBACK_GUIDANCE = """Look for:
- Event listings, cards, or calendar items
- Dates, times, titles, and locations
- Any indication if event is FREE (gratis, kostenlos, keine Gebühr, etc.)
- Include events happening in Tirol region"""

NEWSLETTER_FILTERS = """MANDATORY FILTERS - Only include events that are:
1. FREE (kostenlos, gratis, no cost, 0€, Eintritt frei) - REJECT any event with price/fee/ticket/cost
2. Located in TYROL (Innsbruck, Hall, Wattens, Kufstein, Wörgl, Schwaz, etc.) - REJECT Vienna/Salzburg/Munich/Online-only
3. AI/ML/Data related - Must contain AI, KI, Machine Learning, Deep Learning, Data Science, LLM keywords
4. PUBLIC (open registration) - REJECT internal/members-only/private events
If unsure about any criteria, EXCLUDE the event."""

OUTPUT_FORMAT = """Return a JSON object with an "events" array (empty if nothing qualifies):
{
  "events": [
    {
      "title": "Event name",
      "date": "YYYY-MM-DD",
      "time": "HH:MM",
      "endTime": "HH:MM if available",
      "location": "Venue name",
      "address": "Street address if available",
      "city": "City name",
      "category": "AI|Tech|Startup|Innovation|Business|Education|Other",
      "description": "Brief description (max 200 chars)",
      "registrationUrl": "Registration URL if available",
      "detailUrl": "Event detail page URL if available",
      "tags": ["AI", "Workshop"],
      "language": "de|en|mixed"
    }
  ]
}"""


@dataclass
class ExtractionContext:
    """Where the content came from and how to read it."""

    source_name: str
    url: str | None = None
    source: SourceDescriptor | None = None
    sender: str | None = None
    subject: str | None = None
    newsletter: bool = False
    max_chars: int | None = None
    window_days_back: int | None = None
    window_days_ahead: int | None = None

    @classmethod
    def for_source(cls, source: SourceDescriptor, **kw: Any) -> ExtractionContext:
        return cls(source_name=source.name, url=source.url, source=source, max_chars=source.max_chars, **kw)


def clean_content(raw: str, max_chars: int) -> str:
    """Drop script/style/comment blocks and cap the length."""
    soup = BeautifulSoup(raw, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    cleaned = str(soup)
    if len(cleaned) > max_chars:
        cleaned = cleaned[:max_chars] + TRUNCATION_MARKER
    return cleaned


def build_instructions(source: SourceDescriptor | None) -> str:
    """Source-specific hints, or generic guidance when there are none."""
    if source is None:
        return FALLBACK_GUIDANCE

    parts = [f"Source: {source.name}"]
    if source.html_pattern:
        parts.append(f"HTML PATTERN/SELECTOR:\n{source.html_pattern}")
    if source.date_format:
        parts.append(f"DATE FORMAT ON THIS SITE:\n{source.date_format}\nConvert this format to YYYY-MM-DD.")
    if source.extract_notes:
        parts.append(f"SPECIAL INSTRUCTIONS:\n{source.extract_notes}")
    if source.instructions:
        parts.append(source.instructions.strip())
    if not (source.has_hints or source.instructions):
        parts.append(FALLBACK_GUIDANCE)
    return "\n\n".join(parts)


def build_prompt(content: str, context: ExtractionContext) -> list[dict[str, str]]:
    if context.newsletter:
        header = (
            "Extract events from this newsletter.\n\n"
            f"{NEWSLETTER_FILTERS}\n\n"
            f"Newsletter from: {context.sender or 'unknown'}\n"
            f"Subject: {context.subject or ''}"
        )
        body_label = "NEWSLETTER CONTENT"
    else:
        header = (
            f"You are extracting events from {context.source_name}.\n"
            f"URL: {context.url or 'unknown'}\n\n"
            f"EXTRACTION INSTRUCTIONS:\n{build_instructions(context.source)}"
        )
        body_label = "HTML CONTENT"

    prompt = (
        f"{header}\n\n{GENERAL_RULES}\n\n{body_label}:\n{content}\n\n"
        f"{OUTPUT_FORMAT}\n\nIMPORTANT: Follow the extraction instructions carefully!"
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def parse_response(text: str) -> list[dict[str, Any]]:
    """Pull the event list out of a completion; ``[]`` on anything malformed."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.error("LLM returned malformed JSON: %.200s", text)
        return []

    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict):
        if isinstance(parsed.get("events"), list):
            items = parsed["events"]
        elif parsed.get("title") and parsed.get("date"):
            items = [parsed]
        else:
            arrays = [v for v in parsed.values() if isinstance(v, list)]
            items = arrays[0] if arrays else []
    else:
        items = []

    return [item for item in items if isinstance(item, dict)]


def within_window(value: str, today: dt.date, days_back: int, days_ahead: int) -> bool:
    try:
        day = dt.date.fromisoformat(value.strip()[:10])
    except ValueError:
        return False
    return today - dt.timedelta(days=days_back) <= day <= today + dt.timedelta(days=days_ahead)


class ExtractionAdapter:
    """Prompt the LLM with cleaned content and return plausible candidates.

    Never raises on collaborator trouble: a timeout, HTTP error or malformed
    answer is logged and yields an empty list, so the surrounding ingestion
    run just finds nothing this time.
    """

    def __init__(self, llm: CompletionClient, settings: Settings | None = None) -> None:
        self.llm = llm
        self.settings = settings or get_settings()

    async def extract(
        self,
        raw_content: str,
        context: ExtractionContext,
        today: dt.date | None = None,
    ) -> list[CandidateEvent]:
        default_max = (
            self.settings.newsletter_max_chars if context.newsletter else self.settings.content_max_chars
        )
        content = clean_content(raw_content, context.max_chars or default_max)
        messages = build_prompt(content, context)

        try:
            completion = await self.llm.complete_json(messages)
        except Exception:
            logger.exception("Extraction failed for %s", context.source_name)
            return []

        today = today or dt.datetime.now(dt.timezone.utc).date()
        back = context.window_days_back
        if back is None:
            back = self.settings.window_days_back
        ahead = context.window_days_ahead
        if ahead is None:
            ahead = self.settings.window_days_ahead

        candidates: list[CandidateEvent] = []
        for item in parse_response(completion):
            try:
                candidate = CandidateEvent.model_validate(item)
            except (ValidationError, TypeError, ValueError):
                logger.debug("Dropping unparsable candidate from %s: %s", context.source_name, item)
                continue
            if not candidate.title or not candidate.date:
                continue
            if not within_window(candidate.date, today, back, ahead):
                logger.debug("Dropping %r: date %s outside window", candidate.title, candidate.date)
                continue
            candidates.append(candidate)

        logger.info(
            "Extracted %d candidate(s) from %s", len(candidates), context.source_name,
            extra={"source": context.source_name, "candidates": len(candidates)},
        )
        return candidates
