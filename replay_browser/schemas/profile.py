from pydantic import BaseModel, Field

from replay_browser.models.player_profile import CharacterData, JobCountData, PlayerProfile


class PlayerDataRead(BaseModel):
    """A collected profile with the characters and jobs the player has played."""

    profile: PlayerProfile
    characters: list[CharacterData] = Field(default_factory=list)
    jobs: list[JobCountData] = Field(default_factory=list)
