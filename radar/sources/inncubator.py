"""InnCubator – Innsbruck startup incubator event list (Angular SPA)."""

from radar.base import PageSource, register


@register
class InnCubatorSource(PageSource):
    name = "InnCubator"
    url = "https://www.inncubator.at/events"
    fetch_type = "dynamic-spa"
    priority = "high"
    max_chars = 50_000

    html_pattern = "article.event-item"
    date_format = "Weekday DD.MM in separate spans (span.event-weekday, span.event-day, span.event-year)"
    extract_notes = (
        "Events in article.event-item, title in h2.event-title. Time, location and price "
        "sit in table rows whose th reads Uhrzeit / Ort / Preis. Only include events "
        'where Preis is "kostenlos"; skip "siehe Website" and other prices.'
    )
