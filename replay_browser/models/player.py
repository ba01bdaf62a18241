import uuid

import sqlmodel

from ._base import BaseModel

REDACTED_NAME = "Redacted"


class Player(BaseModel, table=True):
    """One participant of one round."""

    __tablename__: str = "players"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_guid: uuid.UUID = sqlmodel.Field(index=True)
    player_ic_name: str
    player_ooc_name: str = sqlmodel.Field(index=True)
    antag: bool = False
    antag_prototypes: list[str] = sqlmodel.Field(
        default_factory=list, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    job_prototypes: list[str] = sqlmodel.Field(
        default_factory=list, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )

    # Back-reference to the owning replay, kept as a plain key
    replay_id: int | None = sqlmodel.Field(
        default=None, foreign_key="replays.id", index=True, ondelete="CASCADE"
    )

    @property
    def is_redacted(self) -> bool:
        return self.player_guid == uuid.UUID(int=0)

    def redact_information(self) -> None:
        """Irreversibly strip identifying fields. Calling it again changes nothing."""
        self.player_guid = uuid.UUID(int=0)
        self.player_ic_name = REDACTED_NAME
        self.player_ooc_name = REDACTED_NAME

    def __str__(self) -> str:
        return f"{self.player_ooc_name} ({self.player_guid})"
