"""Universität Innsbruck – public lectures and university events."""

from radar.base import PageSource, register


@register
class UniInnsbruckSource(PageSource):
    name = "Uni Innsbruck"
    url = "https://www.uibk.ac.at/events/"
    max_chars = 20_000

    date_format = '"15.01.2026" or "15. Jänner"'
    instructions = """
        University events page. Look for .event-item or article elements.
        Most university events are FREE and public: lectures, workshops,
        conferences. Location is usually a university building in Innsbruck.
    """
