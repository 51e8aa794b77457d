"""WKO Tirol – chamber of commerce events filtered to Tyrol."""

from radar.base import PageSource, register


@register
class WkoTirolSource(PageSource):
    name = "WKO Tirol"
    # bundesland=T is required, without it the list is Austria-wide.
    url = "https://www.wko.at/veranstaltungen/start?bundesland=T"
    priority = "high"
    max_chars = 25_000

    html_pattern = "li.col-md-6.col-lg-4 div.card.card-eventbox"
    date_format = "Weekday DD Month (e.g. Mi 10 Dez), split across three dd elements"
    extract_notes = (
        "Title in the h4 after the date, location after the pin icon (bi-geo-alt-fill), "
        "link in a.stretched-link. Include events marked kostenlos, gratis or without a price."
    )
