"""Die Bäckerei – Kulturbackstube programme."""

from radar.base import PageSource, register


@register
class BaeckereiSource(PageSource):
    name = "Die Bäckerei"
    url = "https://diebaeckerei.at/programm"
    priority = "low"
    max_chars = 20_000

    extract_notes = (
        'Programme/calendar entries. Location "Die Bäckerei, Dreiheiligenstraße 21a, Innsbruck". '
        "Include talks, workshops and meetups; skip concerts with tickets."
    )
