class ReplayError(Exception):
    """Base class for failures raised by the replay ingestion core."""


class MalformedDocumentError(ReplayError):
    """The replay document could not be read into the expected top-level structure."""


class InvalidEventPayloadError(ReplayError):
    """A single event could not be mapped onto the model its discriminator selects."""

    def __init__(self, message: str, *, event_type: str | None = None) -> None:
        super().__init__(message)
        self.event_type = event_type


class UnknownEventTypeError(InvalidEventPayloadError):
    """The event carries a discriminator that no event model is registered for."""


class SourceUnavailableError(ReplayError):
    """The replay source could not be fetched. Usually transient."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Could not fetch {source}: {reason}")
        self.source = source


class StoreFailureError(ReplayError):
    """The replay could not be persisted."""
