import datetime
import uuid

from pydantic import BaseModel, Field

from replay_browser.core.enums import LeaderboardStatistic


class PlayerData(BaseModel):
    player_guid: uuid.UUID
    username: str


class PlayerCount(BaseModel):
    player: PlayerData
    count: int
    position: int


class Leaderboard(BaseModel):
    name: str
    tracked_data: str
    """The text that will appear for the "Count" column."""
    extra_info: str | None = None
    """Will be displayed in a small font below the name."""
    data: dict[str, PlayerCount] = Field(default_factory=dict)


class LeaderboardData(BaseModel):
    is_cache: bool = False
    leaderboards: list[Leaderboard] = Field(default_factory=list)


class PlayerRecord(BaseModel):
    """One player's participation in one stored round, as the aggregator sees it."""

    player_guid: uuid.UUID
    player_ooc_name: str
    antag: bool = False
    deaths: int = 0
    replay_id: int | None = None
    date: datetime.datetime | None = None


class LeaderboardDefinition(BaseModel):
    statistic: LeaderboardStatistic
    name: str
    tracked_data: str
    extra_info: str | None = None
