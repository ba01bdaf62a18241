import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from replay_browser.schemas.replay_event import ReplayEvent
from replay_browser.utils.misc import as_utc


class PlayerCreate(BaseModel):
    """A round participant as it appears in the replay document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player_guid: uuid.UUID = Field(alias="playerGuid")
    player_ic_name: str = Field(default="", alias="playerICName")
    player_ooc_name: str = Field(alias="playerOOCName")
    antag: bool = False
    antag_prototypes: list[str] = Field(default_factory=list, alias="antagPrototypes")
    job_prototypes: list[str] = Field(default_factory=list, alias="jobPrototypes")

    @field_validator("antag_prototypes", "job_prototypes", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("player_ic_name", mode="before")
    @classmethod
    def none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class SkippedEvent(BaseModel):
    """An event the decoder dropped instead of failing the whole replay."""

    index: int
    event_type: str | None = None
    reason: str


class ReplayMetadata(BaseModel):
    """Top-level fields of a replay document. Unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    link: str | None = None
    date: datetime.datetime | None = None
    server_id: str = Field(default="unknown", alias="server_id")
    server_name: str | None = Field(default=None, alias="server_name")
    round_id: int | None = Field(default=None, alias="roundId")
    map: str | None = None
    gamemode: str | None = None
    duration: str | None = None
    round_end_text: str | None = Field(default=None, alias="roundEndText")
    size: int | None = None
    uncompressed_size: int | None = Field(default=None, alias="uncompressedSize")
    end_tick: int | None = Field(default=None, alias="endTick")
    file_count: int | None = Field(default=None, alias="fileCount")

    @field_validator("date", mode="before")
    @classmethod
    def date_only_as_midnight(cls, value: Any) -> Any:
        # YAML turns a bare 2024-05-01 into a date
        if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
            return datetime.datetime.combine(value, datetime.time(), tzinfo=datetime.UTC)
        return value

    @field_validator("date")
    @classmethod
    def date_as_utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return None if value is None else as_utc(value)

    @field_validator("server_id", mode="before")
    @classmethod
    def default_server_id(cls, value: Any) -> Any:
        return "unknown" if value is None else str(value)

    @field_validator("duration", "server_name", "map", "gamemode", mode="before")
    @classmethod
    def as_text(cls, value: Any) -> Any:
        return None if value is None else str(value)


class ReplayCreate(ReplayMetadata):
    """A fully decoded replay, ready to be handed to the store."""

    round_participants: list[PlayerCreate] = Field(default_factory=list)
    events: list[ReplayEvent] = Field(default_factory=list)
    skipped_events: list[SkippedEvent] = Field(default_factory=list)

    def __str__(self) -> str:
        return f"replay of round {self.round_id} on {self.server_id} ({self.link})"


class ReplaySummary(BaseModel):
    """The JSON body delivered to webhooks once a replay is stored."""

    id: int
    link: str | None
    date: datetime.datetime | None
    server_id: str
    server_name: str | None
    round_id: int | None
    map: str | None
    gamemode: str | None
    duration: str | None
    participant_count: int
    event_count: int


class PlayerRead(PlayerCreate):
    id: int


class ReplayRead(ReplayMetadata):
    id: int
    round_participants: list[PlayerRead] = Field(default_factory=list)
    events: list[ReplayEvent] = Field(default_factory=list)
