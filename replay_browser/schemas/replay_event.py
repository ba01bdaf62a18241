"""Typed replay events.

Every event kind is a pydantic model with a literal ``event_type`` discriminator. Decoding
goes through ``EVENT_TYPES``, a closed table from discriminator to model, so adding a new
kind means adding a model and one table entry.
"""

import uuid
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from replay_browser.core.enums import MobState, ReplayEventSeverity, ReplayEventType
from replay_browser.core.exceptions import InvalidEventPayloadError, UnknownEventTypeError

MOB_STATE_SCHEMA_VERSION = 1

# Every spelling a mob state has had in recorded replays. Renames in the game go here
# instead of breaking old recordings.
MOB_STATE_NAMES: dict[str, MobState] = {
    "Invalid": MobState.INVALID,
    "Alive": MobState.ALIVE,
    "Critical": MobState.CRITICAL,
    "SoftCritical": MobState.CRITICAL,
    "Crit": MobState.CRITICAL,
    "Dead": MobState.DEAD,
    "0": MobState.INVALID,
    "1": MobState.ALIVE,
    "2": MobState.CRITICAL,
    "3": MobState.DEAD,
}
_MOB_STATE_NAMES_FOLDED = {name.casefold(): state for name, state in MOB_STATE_NAMES.items()}


def parse_mob_state(value: Any) -> MobState:
    """Map a serialized mob state onto ``MobState``, raising ``ValueError`` when unknown."""
    if isinstance(value, MobState):
        return value
    if isinstance(value, bool) or not isinstance(value, str | int):
        msg = f"Mob state must be a name or an ordinal, got {type(value).__name__}"
        raise ValueError(msg)

    key = str(value).strip()
    state = MOB_STATE_NAMES.get(key) or _MOB_STATE_NAMES_FOLDED.get(key.casefold())
    if state is None:
        msg = f"Unknown mob state {value!r} (schema version {MOB_STATE_SCHEMA_VERSION})"
        raise ValueError(msg)
    return state


class ReplayEventPlayer(BaseModel):
    """Lightweight copy of the player an event is about. Not linked to ``Player`` rows."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player_guid: uuid.UUID = Field(alias="playerGuid")
    player_ic_name: str = Field(default="", alias="playerICName")
    player_ooc_name: str = Field(default="", alias="playerOOCName")
    job_prototypes: list[str] = Field(default_factory=list, alias="jobPrototypes")
    antag_prototypes: list[str] = Field(default_factory=list, alias="antagPrototypes")

    @field_validator("job_prototypes", "antag_prototypes", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class ReplayEventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    event_type: ReplayEventType
    time: float = 0
    severity: ReplayEventSeverity = ReplayEventSeverity.LOW


class MobStateChangedEvent(ReplayEventBase):
    """A player controlled mob changing mob states."""

    event_type: Literal[ReplayEventType.MOB_STATE_CHANGED] = ReplayEventType.MOB_STATE_CHANGED
    target: ReplayEventPlayer
    old_state: MobState = Field(alias="oldState")
    new_state: MobState = Field(alias="newState")

    @field_validator("old_state", "new_state", mode="before")
    @classmethod
    def validate_state(cls, value: Any) -> MobState:
        return parse_mob_state(value)

    @field_serializer("old_state", "new_state")
    def serialize_state(self, value: MobState) -> str:
        return value.value

    @property
    def is_death(self) -> bool:
        return self.new_state == MobState.DEAD and self.old_state != MobState.DEAD


ReplayEvent = MobStateChangedEvent

EVENT_TYPES: dict[ReplayEventType, type[ReplayEventBase]] = {
    ReplayEventType.MOB_STATE_CHANGED: MobStateChangedEvent,
}

EVENT_TYPE_KEY = "type"


def decode_event(raw: Any) -> ReplayEvent:
    """Decode one serialized event, choosing the model by its ``type`` discriminator.

    Raises:
        UnknownEventTypeError: If the discriminator has no registered model.
        InvalidEventPayloadError: If the payload does not fit the selected model.
    """
    if not isinstance(raw, dict):
        msg = f"Event must be a mapping, got {type(raw).__name__}"
        raise InvalidEventPayloadError(msg)

    tag = raw.get(EVENT_TYPE_KEY, raw.get("event_type"))
    try:
        event_type = ReplayEventType(tag)
    except ValueError:
        msg = f"Unknown event type {tag!r}"
        raise UnknownEventTypeError(msg, event_type=str(tag)) from None

    payload = {k: v for k, v in raw.items() if k not in {EVENT_TYPE_KEY, "event_type"}}
    try:
        return EVENT_TYPES[event_type].model_validate(payload)  # pyright: ignore[reportReturnType]
    except ValidationError as e:
        msg = f"Invalid {event_type} payload: {e.errors(include_url=False)}"
        raise InvalidEventPayloadError(msg, event_type=event_type) from e


def encode_event(event: ReplayEvent) -> dict[str, Any]:
    """Serialize an event back to the tagged form ``decode_event`` accepts."""
    payload = event.model_dump(mode="json", by_alias=True, exclude={"event_type"})
    return {EVENT_TYPE_KEY: event.event_type.value, **payload}
