import uuid
from typing import Annotated

import anyio.to_thread
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from replay_browser.core.exceptions import ReplayError
from replay_browser.models.player_profile import PlayerProfile
from replay_browser.schemas.common import APIResponse
from replay_browser.schemas.ingestion import ParserStatus
from replay_browser.schemas.profile import PlayerDataRead
from replay_browser.schemas.replay import PlayerRead, ReplayRead, ReplaySummary
from replay_browser.services.profile import ProfileService
from replay_browser.services.replay import ReplayService
from replay_browser.services.replay_decoder import decode_replay
from replay_browser.services.replay_parser import ReplayParserService, get_replay_parser
from replay_browser.services.webhook import notify_replay_ingested, summarize_replay

router = APIRouter(prefix="/replays", tags=["replays"])


@router.get("/")
async def find_replays(
    server_id: str,
    player_guid: uuid.UUID,
    service: Annotated[ReplayService, Depends()],
) -> APIResponse[list[ReplaySummary]]:
    replays = await service.find_by_server_and_participant(server_id, player_guid)
    return APIResponse(data=[summarize_replay(replay) for replay in replays])


@router.get("/parser")
async def get_parser_status(
    parser: Annotated[ReplayParserService, Depends(get_replay_parser)],
) -> APIResponse[ParserStatus]:
    return APIResponse(data=parser.status())


@router.get("/{replay_id}")
async def get_replay(
    replay_id: int, service: Annotated[ReplayService, Depends()]
) -> APIResponse[ReplayRead]:
    replay = await service.get_replay(replay_id)
    if not replay:
        raise HTTPException(status_code=404, detail="Replay not found")

    data = ReplayRead.model_validate(
        replay.model_dump()
        | {
            "round_participants": [
                PlayerRead.model_validate(player.model_dump())
                for player in replay.round_participants
            ],
            "events": service.get_replay_events(replay),
        }
    )
    return APIResponse(data=data)


@router.delete("/{replay_id}")
async def delete_replay(
    replay_id: int, service: Annotated[ReplayService, Depends()]
) -> APIResponse[None]:
    deleted = await service.delete_replay(replay_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Replay not found")
    return APIResponse(message="Replay deleted successfully")


@router.post("/parse")
async def parse_replay(
    url: Annotated[str, Query(min_length=1)],
    parser: Annotated[ReplayParserService, Depends(get_replay_parser)],
) -> APIResponse[None]:
    parser.enqueue(url)
    if not parser.request_queue_consumption():
        raise HTTPException(status_code=400, detail="The replay parser is currently busy.")
    return APIResponse(message="Replay queued for parsing")


@router.post("/upload")
async def upload_replay(
    request: Request,
    service: Annotated[ReplayService, Depends()],
    link: str | None = None,
) -> APIResponse[ReplaySummary]:
    raw = await request.body()
    try:
        replay_create = await anyio.to_thread.run_sync(decode_replay, raw, link)
    except ReplayError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    replay = await service.save_replay(replay_create)
    await notify_replay_ingested(replay)
    return APIResponse(data=summarize_replay(replay), message="Replay parsed successfully")


@router.post("/players/{player_guid}/redact")
async def redact_player(
    player_guid: uuid.UUID, service: Annotated[ReplayService, Depends()]
) -> APIResponse[int]:
    redacted = await service.redact_player(player_guid)
    return APIResponse(data=redacted, message=f"Redacted {redacted} round participations")


@router.get("/profiles/{player_guid}")
async def get_player_data(
    player_guid: uuid.UUID, service: Annotated[ProfileService, Depends()]
) -> APIResponse[PlayerDataRead]:
    player_data = await service.get_player_data(player_guid)
    if not player_data:
        raise HTTPException(status_code=404, detail="No profile collected for this player")
    return APIResponse(data=player_data)


@router.post("/profiles/{player_guid}/collect")
async def collect_player_profile(
    player_guid: uuid.UUID, service: Annotated[ProfileService, Depends()]
) -> APIResponse[PlayerProfile]:
    profile = await service.collect_player_profile(player_guid)
    if not profile:
        raise HTTPException(status_code=404, detail="Player has no stored rounds")
    return APIResponse(data=profile)


@router.delete("/profiles/{server_id}")
async def delete_server_profiles(
    server_id: str, service: Annotated[ProfileService, Depends()]
) -> APIResponse[int]:
    deleted = await service.delete_server_profiles(server_id)
    return APIResponse(data=deleted, message=f"Deleted profiles of {deleted} players")
