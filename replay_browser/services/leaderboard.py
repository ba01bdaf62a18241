import time
import uuid
from collections.abc import Callable, Iterable, Sequence
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.core.config import settings
from replay_browser.core.db import get_db
from replay_browser.core.enums import LeaderboardStatistic
from replay_browser.models.player import REDACTED_NAME
from replay_browser.schemas.leaderboard import (
    Leaderboard,
    LeaderboardData,
    LeaderboardDefinition,
    PlayerCount,
    PlayerData,
    PlayerRecord,
)
from replay_browser.services.replay import ReplayService

LEADERBOARDS: dict[LeaderboardStatistic, LeaderboardDefinition] = {
    LeaderboardStatistic.ROUNDS_PLAYED: LeaderboardDefinition(
        statistic=LeaderboardStatistic.ROUNDS_PLAYED,
        name="Most seen players",
        tracked_data="Times seen",
    ),
    LeaderboardStatistic.ANTAG_ROUNDS: LeaderboardDefinition(
        statistic=LeaderboardStatistic.ANTAG_ROUNDS,
        name="Most antag players",
        tracked_data="Times antag",
    ),
    LeaderboardStatistic.DEATHS: LeaderboardDefinition(
        statistic=LeaderboardStatistic.DEATHS,
        name="Most deaths",
        tracked_data="Times died",
        extra_info="Counted from mob state changes",
    ),
}

STATISTIC_COUNTERS: dict[LeaderboardStatistic, Callable[[PlayerRecord], int]] = {
    LeaderboardStatistic.ROUNDS_PLAYED: lambda _record: 1,
    LeaderboardStatistic.ANTAG_ROUNDS: lambda record: int(record.antag),
    LeaderboardStatistic.DEATHS: lambda record: record.deaths,
}

type CacheKey = tuple[tuple[LeaderboardStatistic, ...], int | None]


def compute_leaderboard(
    statistic: LeaderboardStatistic, records: Iterable[PlayerRecord], *, limit: int | None = None
) -> Leaderboard:
    """Rank players by one statistic.

    Counts are summed per player GUID and sorted descending, ties broken by GUID. Positions
    use competition ranking: equal counts share a position and the next count skips ahead,
    so 10, 10, 8 ranks as 1, 1, 3. Players with a count of zero are left out.

    Records are expected oldest first; the last name seen for a GUID is the one displayed.
    """
    definition = LEADERBOARDS[statistic]
    count_record = STATISTIC_COUNTERS[statistic]

    counts: dict[uuid.UUID, int] = {}
    names: dict[uuid.UUID, str] = {}
    for record in records:
        guid = record.player_guid
        counts[guid] = counts.get(guid, 0) + count_record(record)
        names[guid] = REDACTED_NAME if guid == uuid.UUID(int=0) else record.player_ooc_name

    ranked = sorted((g for g, c in counts.items() if c > 0), key=lambda g: (-counts[g], str(g)))
    if limit is not None:
        ranked = ranked[:limit]

    data: dict[str, PlayerCount] = {}
    position = 0
    previous_count: int | None = None
    for index, guid in enumerate(ranked, start=1):
        if counts[guid] != previous_count:
            position = index
            previous_count = counts[guid]
        data[str(guid)] = PlayerCount(
            player=PlayerData(player_guid=guid, username=names[guid]),
            count=counts[guid],
            position=position,
        )

    return Leaderboard(
        name=definition.name,
        tracked_data=definition.tracked_data,
        extra_info=definition.extra_info,
        data=data,
    )


def build_leaderboard_data(
    leaderboards: Sequence[Leaderboard], *, is_cache: bool
) -> LeaderboardData:
    return LeaderboardData(is_cache=is_cache, leaderboards=list(leaderboards))


class LeaderboardCache:
    """Keeps computed leaderboards for a short while so reads don't rescan every replay."""

    def __init__(self, ttl_seconds: float) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[CacheKey, tuple[float, list[Leaderboard]]] = {}

    def get(self, key: CacheKey) -> list[Leaderboard] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, leaderboards = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return leaderboards

    def set(self, key: CacheKey, leaderboards: list[Leaderboard]) -> None:
        self._entries[key] = (time.monotonic() + self.ttl_seconds, leaderboards)

    def clear(self) -> None:
        self._entries.clear()


leaderboard_cache = LeaderboardCache(settings.leaderboard_cache_ttl_seconds)


class LeaderboardService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db
        self.cache = leaderboard_cache

    async def compute_leaderboard_data(
        self,
        statistics: Sequence[LeaderboardStatistic] | None = None,
        *,
        limit: int | None = settings.leaderboard_size,
        use_cache: bool = True,
    ) -> LeaderboardData:
        """Compute the requested leaderboards, serving a recent snapshot when there is one."""
        requested = tuple(dict.fromkeys(statistics or LeaderboardStatistic))
        key: CacheKey = (requested, limit)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return build_leaderboard_data(cached, is_cache=True)

        records = await ReplayService(self.db).get_player_records()
        leaderboards = [compute_leaderboard(s, records, limit=limit) for s in requested]
        logger.info(
            f"Computed {len(leaderboards)} leaderboards from {len(records)} player records"
        )

        self.cache.set(key, leaderboards)
        return build_leaderboard_data(leaderboards, is_cache=False)
