from .player import Player
from .player_profile import CharacterData, JobCountData, PlayerProfile
from .replay import Replay
from .replay_event import StoredReplayEvent

__all__ = (
    "CharacterData",
    "JobCountData",
    "Player",
    "PlayerProfile",
    "Replay",
    "StoredReplayEvent",
)
