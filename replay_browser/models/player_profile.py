import uuid
from datetime import datetime

import sqlmodel

from ._base import BaseModel


class PlayerProfile(BaseModel, table=True):
    """Per-player data collected from every stored round the player took part in."""

    __tablename__: str = "player_profiles"

    player_guid: uuid.UUID = sqlmodel.Field(primary_key=True)
    username: str
    total_rounds: int = sqlmodel.Field(default=0, ge=0)
    total_antag_rounds: int = sqlmodel.Field(default=0, ge=0)
    last_seen: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )


class CharacterData(BaseModel, table=True):
    __tablename__: str = "character_data"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    collected_player_data_player_guid: uuid.UUID = sqlmodel.Field(index=True)
    character_name: str
    rounds_played: int = sqlmodel.Field(default=0, ge=0)
    last_played: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )


class JobCountData(BaseModel, table=True):
    __tablename__: str = "job_count_data"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    collected_player_data_player_guid: uuid.UUID = sqlmodel.Field(index=True)
    job_prototype: str
    rounds_played: int = sqlmodel.Field(default=0, ge=0)
    last_played: datetime | None = sqlmodel.Field(
        default=None, nullable=True, sa_type=sqlmodel.DateTime(timezone=True)
    )
