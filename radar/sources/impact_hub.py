"""Impact Hub Tirol – community events (English site)."""

from radar.base import PageSource, register


@register
class ImpactHubTirolSource(PageSource):
    name = "Impact Hub Tirol"
    url = "https://tirol.impacthub.net/en/collection/?_sf_tag=upcoming-events"
    fetch_type = "dynamic-spa"
    max_chars = 20_000

    date_format = "Month DD, YYYY (e.g. January 15, 2026)"
    extract_notes = (
        'Event cards in a grid. Mix of free and paid events. Location is "Impact Hub Tirol, '
        'Innsbruck" unless stated otherwise.'
    )
