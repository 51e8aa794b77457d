"""MCI – Management Center Innsbruck public lectures."""

from radar.base import PageSource, register


@register
class MciSource(PageSource):
    name = "MCI"
    url = "https://www.mci4me.at/de/events"
    active = False
    max_chars = 20_000

    extract_notes = 'Location "MCI, Universitätsstraße 15, Innsbruck". Include info sessions and open lectures.'
