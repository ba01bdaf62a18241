"""Shared fixtures for the replay browser tests.

Every test that touches the database gets its own in-memory SQLite engine, so tests
never see each other's rows.
"""

import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

ALICE_GUID = "11111111-1111-1111-1111-111111111111"
BOB_GUID = "22222222-2222-2222-2222-222222222222"

REPLAY_LINK = "https://cdn.example.com/replays/main/2024_05_01-14_30-round_42.zip"


def make_replay_document(round_id: int = 42, server_id: str = "main") -> str:
    return f"""\
roundId: {round_id}
server_id: {server_id}
server_name: Main Station
map: Box Station
gamemode: Traitor
duration: "00:45:12"
roundEndText: The shuttle has docked.
endTick: 81234
fileCount: 12
someFieldFromANewerGameVersion: ignored
roundEndPlayers:
  - playerGuid: {ALICE_GUID}
    playerICName: Alice Smith
    playerOOCName: alice
    antag: true
    antagPrototypes: [Traitor]
    jobPrototypes: [Captain]
  - playerGuid: {BOB_GUID}
    playerICName: Bob Jones
    playerOOCName: bob
    antag: false
    antagPrototypes: []
    jobPrototypes: [Botanist, Chef]
events:
  - !type:MobStateChangedPlayerReplayEvent
    time: 120.5
    severity: Medium
    target:
      playerGuid: {BOB_GUID}
      playerICName: Bob Jones
      playerOOCName: bob
    oldState: Alive
    newState: Critical
  - !type:MobStateChangedPlayerReplayEvent
    time: 130
    severity: High
    target:
      playerGuid: {BOB_GUID}
      playerICName: Bob Jones
      playerOOCName: bob
    oldState: Critical
    newState: Dead
"""


def pytest_configure(config: pytest.Config) -> None:
    """Point the settings at throwaway resources before the app modules are imported."""
    os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
    os.environ["ENV"] = "dev"
    os.environ["WEBHOOK_URLS"] = "[]"
    os.environ["STORAGE_URLS"] = "[]"
    os.environ["INGEST_RETRY_BACKOFF_SECONDS"] = "0"


@pytest.fixture
def replay_document() -> str:
    return make_replay_document()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    import replay_browser.models  # noqa: F401, PLC0415

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> Callable[[], AsyncSession]:
    return lambda: AsyncSession(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: Callable[[], AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_leaderboard_cache() -> None:
    from replay_browser.services.leaderboard import leaderboard_cache  # noqa: PLC0415

    leaderboard_cache.clear()
