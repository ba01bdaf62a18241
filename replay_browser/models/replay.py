from datetime import datetime

import sqlmodel
from sqlalchemy.orm import Mapped

from ._base import BaseModel
from .player import Player
from .replay_event import StoredReplayEvent


class Replay(BaseModel, table=True):
    __tablename__: str = "replays"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    link: str | None = sqlmodel.Field(default=None, index=True)
    date: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )
    server_id: str = sqlmodel.Field(default="unknown", index=True)
    server_name: str | None = None
    round_id: int | None = None
    map: str | None = None
    gamemode: str | None = None
    duration: str | None = None
    round_end_text: str | None = None
    size: int | None = None
    uncompressed_size: int | None = None
    end_tick: int | None = None
    file_count: int | None = None

    round_participants: Mapped[list[Player]] = sqlmodel.Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "Player.id",
        }
    )
    events: Mapped[list[StoredReplayEvent]] = sqlmodel.Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "StoredReplayEvent.sequence",
        }
    )

    def __str__(self) -> str:
        return f"Replay #{self.id} ({self.server_id}, round {self.round_id}, {self.link})"
