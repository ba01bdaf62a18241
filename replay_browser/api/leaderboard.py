from typing import Annotated

from fastapi import APIRouter, Depends, Query

from replay_browser.core.enums import LeaderboardStatistic
from replay_browser.schemas.common import APIResponse
from replay_browser.schemas.leaderboard import LeaderboardData
from replay_browser.services.leaderboard import LeaderboardService

router = APIRouter(prefix="/leaderboards", tags=["leaderboards"])


@router.get("/")
async def get_leaderboards(
    service: Annotated[LeaderboardService, Depends()],
    statistics: Annotated[
        list[LeaderboardStatistic] | None,
        Query(description="Leaderboards to compute, all of them if omitted"),
    ] = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> APIResponse[LeaderboardData]:
    if limit is None:
        data = await service.compute_leaderboard_data(statistics)
    else:
        data = await service.compute_leaderboard_data(statistics, limit=limit)
    return APIResponse(data=data)
