"""Auto-import all Tyrol sources to trigger @register decorators."""

from radar.sources import (  # noqa: F401
    baeckerei,
    impact_hub,
    inncubator,
    mci,
    standort_tirol,
    startup_tirol,
    uibk,
    wko_tirol,
)
