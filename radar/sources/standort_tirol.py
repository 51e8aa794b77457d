"""Standortagentur Tirol – innovation and funding events."""

from radar.base import PageSource, register


@register
class StandortTirolSource(PageSource):
    name = "Standortagentur Tirol"
    url = "https://www.standort-tirol.at/veranstaltungen"
    priority = "high"
    max_chars = 20_000

    date_format = "DD.MM.YYYY"
    instructions = """
        Standortagentur lists innovation and business events.
        Look for event teasers or list items. Many info events and workshops
        are FREE; include them if no price is shown or only
        "Anmeldung erforderlich". Focus: Innovation, Digitalization, Funding.
    """
