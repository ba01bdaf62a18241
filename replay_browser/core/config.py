from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings

DEFAULT_REPLAY_REGEX = r"(\d{4}_\d{2}_\d{2}-\d{2}_\d{2}|\d{4}-\d{2}-\d{2})"


class StorageUrl(BaseModel):
    """A replay storage location and the regex that extracts the date from its file names."""

    url: str
    replay_regex: str = DEFAULT_REPLAY_REGEX


class Config(BaseSettings):
    db_url: str = "sqlite+aiosqlite:///replays.db"
    env: Literal["prod", "dev"] = "prod"

    # Replay sources, e.g. STORAGE_URLS='[{"url": "https://cdn.example.com/replays/"}]'
    storage_urls: list[StorageUrl] = []

    # Completion hand-off
    webhook_urls: list[str] = []
    webhook_timeout_seconds: float = 10.0

    # Ingestion
    ingest_max_attempts: int = 3
    ingest_retry_backoff_seconds: float = 2.0
    fetch_timeout_seconds: float = 60.0

    # Leaderboards
    leaderboard_cache_ttl_seconds: int = 5 * 60  # 5 minutes
    leaderboard_size: int | None = 100

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"


load_dotenv()
settings = Config()
