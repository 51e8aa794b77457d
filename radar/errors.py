"""Exception types raised across the radar pipeline."""


class RadarError(Exception):
    """Base class for radar errors."""


class StoreError(RadarError):
    """The event store could not be reached or rejected an operation.

    Retryable: callers may try the same operation again later.
    """


class InvalidStatusTransition(RadarError):
    def __init__(self, event_id: str, current: str, target: str) -> None:
        super().__init__(f"{event_id}: cannot move from {current!r} to {target!r}")
        self.event_id = event_id
        self.current = current
        self.target = target


class SourceNotFound(RadarError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown source: {name!r}")
        self.name = name


class SourceMisconfigured(RadarError):
    """The source exists but cannot be fetched as configured (e.g. no URL)."""


class FetchError(RadarError):
    """Fetching a source page failed (transport error or non-2xx)."""


class SheetsError(RadarError):
    """The spreadsheet collaborator returned an error."""


class InvalidPayload(RadarError):
    """A request or webhook body is missing required fields."""
