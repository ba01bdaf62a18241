import uuid
from collections import Counter
from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.core.db import get_db
from replay_browser.core.enums import ReplayEventType
from replay_browser.core.exceptions import InvalidEventPayloadError, StoreFailureError
from replay_browser.models.player import REDACTED_NAME, Player
from replay_browser.models.player_profile import CharacterData, JobCountData, PlayerProfile
from replay_browser.models.replay import Replay
from replay_browser.models.replay_event import StoredReplayEvent
from replay_browser.schemas.leaderboard import PlayerRecord
from replay_browser.schemas.replay import ReplayCreate
from replay_browser.schemas.replay_event import (
    EVENT_TYPE_KEY,
    MobStateChangedEvent,
    ReplayEvent,
    decode_event,
    encode_event,
)


class ReplayService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_replay(self, replay_id: int) -> Replay | None:
        result = await self.db.exec(select(Replay).where(Replay.id == replay_id))
        return result.first()

    @staticmethod
    def load_event(stored: StoredReplayEvent) -> ReplayEvent:
        return decode_event({EVENT_TYPE_KEY: stored.event_type, **stored.payload})

    def get_replay_events(self, replay: Replay) -> list[ReplayEvent]:
        """Rehydrate the typed events of a stored replay, in recorded order."""
        events: list[ReplayEvent] = []
        for stored in replay.events:
            try:
                events.append(self.load_event(stored))
            except InvalidEventPayloadError as e:
                logger.warning(f"Stored event #{stored.id} of {replay} is unreadable: {e}")
        return events

    async def save_replay(self, replay: ReplayCreate) -> Replay:
        """Persist a decoded replay with its participants and events.

        Raises:
            StoreFailureError: If the database rejects the write.
        """
        db_replay = Replay(
            **replay.model_dump(exclude={"round_participants", "events", "skipped_events"})
        )
        db_replay.round_participants = [Player(**p.model_dump()) for p in replay.round_participants]
        db_replay.events = [
            StoredReplayEvent(
                sequence=index,
                event_type=event.event_type,
                payload={k: v for k, v in encode_event(event).items() if k != EVENT_TYPE_KEY},
            )
            for index, event in enumerate(replay.events)
        ]

        try:
            self.db.add(db_replay)
            await self.db.commit()
            await self.db.refresh(db_replay)
        except SQLAlchemyError as e:
            await self.db.rollback()
            msg = f"Could not store {replay}: {e}"
            raise StoreFailureError(msg) from e

        return db_replay

    async def delete_replay(self, replay_id: int) -> bool:
        replay = await self.get_replay(replay_id)
        if not replay:
            return False

        await self.db.delete(replay)
        await self.db.commit()
        return True

    async def find_by_server_and_participant(
        self, server_id: str, player_guid: uuid.UUID
    ) -> Sequence[Replay]:
        """Replays recorded on ``server_id`` that ``player_guid`` took part in."""
        participated = select(Player.replay_id).where(Player.player_guid == player_guid)
        result = await self.db.exec(
            select(Replay)
            .where(Replay.server_id == server_id, col(Replay.id).in_(participated))
            .order_by(col(Replay.date), col(Replay.id))
        )
        return result.all()

    async def get_server_player_guids(self, server_id: str) -> list[uuid.UUID]:
        result = await self.db.exec(
            select(Player.player_guid)
            .join(Replay, col(Player.replay_id) == col(Replay.id))
            .where(Replay.server_id == server_id)
            .distinct()
        )
        return list(result.all())

    async def get_player_records(self) -> list[PlayerRecord]:
        """Flatten every stored participant into a ``PlayerRecord`` for the aggregator."""
        deaths: Counter[tuple[int | None, uuid.UUID]] = Counter()
        event_result = await self.db.exec(
            select(StoredReplayEvent).where(
                StoredReplayEvent.event_type == ReplayEventType.MOB_STATE_CHANGED
            )
        )
        for stored in event_result.all():
            try:
                event = self.load_event(stored)
            except InvalidEventPayloadError as e:
                logger.warning(f"Ignoring unreadable stored event #{stored.id}: {e}")
                continue
            if isinstance(event, MobStateChangedEvent) and event.is_death:
                deaths[stored.replay_id, event.target.player_guid] += 1

        result = await self.db.exec(
            select(Player, Replay.date)
            .join(Replay, col(Player.replay_id) == col(Replay.id))
            .order_by(col(Replay.date), col(Player.id))
        )
        return [
            PlayerRecord(
                player_guid=player.player_guid,
                player_ooc_name=player.player_ooc_name,
                antag=player.antag,
                # Rows sharing a key (redacted players, duplicate entries) count its deaths once
                deaths=deaths.pop((player.replay_id, player.player_guid), 0),
                replay_id=player.replay_id,
                date=date,
            )
            for player, date in result.all()
        ]

    async def redact_player(self, player_guid: uuid.UUID) -> int:
        """Anonymize every participation of a player, including event targets.

        Everything is committed together so a player is never left half redacted.
        Returns the number of participations that were redacted.
        """
        result = await self.db.exec(select(Player).where(Player.player_guid == player_guid))
        players = result.all()
        for player in players:
            player.redact_information()
            self.db.add(player)

        event_result = await self.db.exec(
            select(StoredReplayEvent).where(
                StoredReplayEvent.event_type == ReplayEventType.MOB_STATE_CHANGED
            )
        )
        for stored in event_result.all():
            target = stored.payload.get("target") or {}
            if str(target.get("playerGuid")) != str(player_guid):
                continue
            stored.payload = {
                **stored.payload,
                "target": {
                    **target,
                    "playerGuid": str(uuid.UUID(int=0)),
                    "playerICName": REDACTED_NAME,
                    "playerOOCName": REDACTED_NAME,
                },
            }
            self.db.add(stored)

        await self.delete_character_and_job_data_for(player_guid, commit=False)
        profile = await self.db.get(PlayerProfile, player_guid)
        if profile:
            await self.db.delete(profile)
        await self.db.commit()
        logger.info(f"Redacted {len(players)} participations of {player_guid}")
        return len(players)

    async def delete_character_and_job_data_for(
        self, player_guid: uuid.UUID, *, commit: bool = True
    ) -> int:
        """Delete the collected character and job rows of a player. Returns the row count."""
        characters = await self.db.exec(
            select(CharacterData).where(
                col(CharacterData.collected_player_data_player_guid) == player_guid
            )
        )
        jobs = await self.db.exec(
            select(JobCountData).where(
                col(JobCountData.collected_player_data_player_guid) == player_guid
            )
        )

        rows = [*characters.all(), *jobs.all()]
        for row in rows:
            await self.db.delete(row)

        if commit:
            await self.db.commit()
        return len(rows)
