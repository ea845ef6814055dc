"""Exception hierarchy for opswatch."""


class OpswatchError(Exception):
    """Base class for errors surfaced to operators."""


class StoreError(OpswatchError):
    """Raised when a persisted document cannot be read, parsed or written."""


class ConfigurationError(OpswatchError):
    """Raised on invalid configuration changes (duplicate names, unknown kinds)."""


class EventNotFoundError(OpswatchError):
    """Raised when subscribing to an event that is not configured."""

    def __init__(self, event_name: str):
        super().__init__(f"Event '{event_name}' does not exist in configuration")
        self.event_name = event_name
