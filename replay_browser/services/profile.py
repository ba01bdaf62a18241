import uuid
from collections import Counter
from datetime import datetime
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.core.db import get_db
from replay_browser.models.player import Player
from replay_browser.models.player_profile import CharacterData, JobCountData, PlayerProfile
from replay_browser.models.replay import Replay
from replay_browser.schemas.profile import PlayerDataRead
from replay_browser.services.replay import ReplayService


class ProfileService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_profile(self, player_guid: uuid.UUID) -> PlayerProfile | None:
        return await self.db.get(PlayerProfile, player_guid)

    async def get_character_data(self, player_guid: uuid.UUID) -> list[CharacterData]:
        result = await self.db.exec(
            select(CharacterData)
            .where(col(CharacterData.collected_player_data_player_guid) == player_guid)
            .order_by(col(CharacterData.rounds_played).desc(), col(CharacterData.character_name))
        )
        return list(result.all())

    async def get_job_count_data(self, player_guid: uuid.UUID) -> list[JobCountData]:
        result = await self.db.exec(
            select(JobCountData)
            .where(col(JobCountData.collected_player_data_player_guid) == player_guid)
            .order_by(col(JobCountData.rounds_played).desc(), col(JobCountData.job_prototype))
        )
        return list(result.all())

    async def get_player_data(self, player_guid: uuid.UUID) -> PlayerDataRead | None:
        profile = await self.get_profile(player_guid)
        if profile is None:
            return None

        return PlayerDataRead(
            profile=profile,
            characters=await self.get_character_data(player_guid),
            jobs=await self.get_job_count_data(player_guid),
        )

    async def collect_player_profile(self, player_guid: uuid.UUID) -> PlayerProfile | None:
        """Rebuild a player's profile, character and job rows from their stored rounds.

        Returns None if the player has no stored rounds.
        """
        result = await self.db.exec(
            select(Player, Replay.date)
            .join(Replay, col(Player.replay_id) == col(Replay.id))
            .where(Player.player_guid == player_guid)
            .order_by(col(Replay.date), col(Player.id))
        )
        rows = result.all()
        if not rows:
            return None

        characters: Counter[str] = Counter()
        jobs: Counter[str] = Counter()
        character_last_played: dict[str, datetime | None] = {}
        job_last_played: dict[str, datetime | None] = {}
        for player, date in rows:
            characters[player.player_ic_name] += 1
            character_last_played[player.player_ic_name] = date
            for job in player.job_prototypes:
                jobs[job] += 1
                job_last_played[job] = date

        latest_player, last_seen = rows[-1]

        await ReplayService(self.db).delete_character_and_job_data_for(player_guid, commit=False)

        profile = await self.get_profile(player_guid)
        if profile is None:
            profile = PlayerProfile(player_guid=player_guid, username=latest_player.player_ooc_name)
        profile.username = latest_player.player_ooc_name
        profile.total_rounds = len(rows)
        profile.total_antag_rounds = sum(1 for player, _ in rows if player.antag)
        profile.last_seen = last_seen
        self.db.add(profile)

        for name, count in characters.items():
            self.db.add(
                CharacterData(
                    collected_player_data_player_guid=player_guid,
                    character_name=name,
                    rounds_played=count,
                    last_played=character_last_played[name],
                )
            )
        for job, count in jobs.items():
            self.db.add(
                JobCountData(
                    collected_player_data_player_guid=player_guid,
                    job_prototype=job,
                    rounds_played=count,
                    last_played=job_last_played[job],
                )
            )

        await self.db.commit()
        await self.db.refresh(profile)
        return profile

    async def delete_server_profiles(self, server_id: str) -> int:
        """Delete the collected data of everyone who played on a server.

        The replays themselves are kept. Returns the number of players affected.
        """
        replay_service = ReplayService(self.db)
        player_guids = await replay_service.get_server_player_guids(server_id)

        for player_guid in player_guids:
            await replay_service.delete_character_and_job_data_for(player_guid, commit=False)

        profiles = await self.db.exec(
            select(PlayerProfile).where(col(PlayerProfile.player_guid).in_(player_guids))
        )
        for profile in profiles.all():
            await self.db.delete(profile)

        await self.db.commit()
        logger.info(f"Deleted profiles of {len(player_guids)} players of server {server_id}")
        return len(player_guids)
