import threading
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.api import replay as replay_api
from replay_browser.core.db import get_db
from replay_browser.main import app
from replay_browser.schemas.replay import ReplayCreate
from replay_browser.services.replay_decoder import decode_replay
from replay_browser.services.replay_parser import ReplayParserService
from tests.conftest import BOB_GUID, REPLAY_LINK

type SessionFactory = Callable[[], AsyncSession]


async def no_fetch(source: str) -> bytes:
    raise AssertionError(f"Unexpected fetch of {source}")


@pytest_asyncio.fixture
async def client(session_factory: SessionFactory) -> AsyncGenerator[httpx.AsyncClient]:
    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.replay_parser = ReplayParserService(
        session_factory=session_factory, fetcher=no_fetch, max_attempts=1
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def upload(client: httpx.AsyncClient, document: str) -> httpx.Response:
    return await client.post(
        "/api/replays/upload", params={"link": REPLAY_LINK}, content=document.encode()
    )


class TestReplayRoutes:
    async def test_healthz(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/")

        assert response.json() == "OK"

    async def test_upload_and_get(self, client: httpx.AsyncClient, replay_document: str) -> None:
        response = await upload(client, replay_document)

        assert response.status_code == 200
        summary = response.json()["data"]
        assert summary["participant_count"] == 2
        assert summary["event_count"] == 2

        response = await client.get(f"/api/replays/{summary['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert len(body["data"]["round_participants"]) == 2
        assert len(body["data"]["events"]) == 2

    async def test_upload_malformed_document(self, client: httpx.AsyncClient) -> None:
        response = await upload(client, "- not\n- a replay\n")

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["message"] == "Replay document must be a mapping, got list"

    async def test_get_missing_replay(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/replays/404")

        assert response.status_code == 404
        assert response.json()["status"] == "error"

    async def test_find_replays(self, client: httpx.AsyncClient, replay_document: str) -> None:
        await upload(client, replay_document)

        response = await client.get(
            "/api/replays/", params={"server_id": "main", "player_guid": BOB_GUID}
        )

        assert [r["round_id"] for r in response.json()["data"]] == [42]

    async def test_delete_replay(self, client: httpx.AsyncClient, replay_document: str) -> None:
        replay_id = (await upload(client, replay_document)).json()["data"]["id"]

        assert (await client.delete(f"/api/replays/{replay_id}")).status_code == 200
        assert (await client.delete(f"/api/replays/{replay_id}")).status_code == 404

    async def test_upload_decodes_off_the_event_loop(
        self, client: httpx.AsyncClient, replay_document: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        decode_threads: list[int] = []

        def recording_decode(*args: Any, **kwargs: Any) -> ReplayCreate:
            decode_threads.append(threading.get_ident())
            return decode_replay(*args, **kwargs)

        monkeypatch.setattr(replay_api, "decode_replay", recording_decode)

        response = await upload(client, replay_document)

        assert response.status_code == 200
        assert decode_threads
        assert threading.get_ident() not in decode_threads


class TestParserRoutes:
    async def test_busy_parser(self, client: httpx.AsyncClient) -> None:
        parser: ReplayParserService = app.state.replay_parser
        assert parser.request_drain()

        response = await client.post("/api/replays/parse", params={"url": REPLAY_LINK})

        assert response.status_code == 400
        assert response.json()["message"] == "The replay parser is currently busy."
        assert parser.pending == [REPLAY_LINK]

    async def test_parser_status(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/replays/parser")

        assert response.status_code == 200
        assert response.json()["data"] == {"is_draining": False, "pending": [], "last_report": None}


class TestProfileRoutes:
    async def test_collect_and_delete(
        self, client: httpx.AsyncClient, replay_document: str
    ) -> None:
        await upload(client, replay_document)

        response = await client.post(f"/api/replays/profiles/{BOB_GUID}/collect")

        assert response.status_code == 200
        assert response.json()["data"]["total_rounds"] == 1

        response = await client.delete("/api/replays/profiles/main")

        assert response.json()["data"] == 2

    async def test_get_player_data(self, client: httpx.AsyncClient, replay_document: str) -> None:
        await upload(client, replay_document)
        await client.post(f"/api/replays/profiles/{BOB_GUID}/collect")

        response = await client.get(f"/api/replays/profiles/{BOB_GUID}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["profile"]["username"] == "bob"
        assert [c["character_name"] for c in data["characters"]] == ["Bob Jones"]
        assert sorted(j["job_prototype"] for j in data["jobs"]) == ["Botanist", "Chef"]

    async def test_get_player_data_before_collecting(
        self, client: httpx.AsyncClient, replay_document: str
    ) -> None:
        await upload(client, replay_document)

        response = await client.get(f"/api/replays/profiles/{BOB_GUID}")

        assert response.status_code == 404

    async def test_collect_unknown_player(self, client: httpx.AsyncClient) -> None:
        response = await client.post(f"/api/replays/profiles/{BOB_GUID}/collect")

        assert response.status_code == 404

    async def test_redact_player(self, client: httpx.AsyncClient, replay_document: str) -> None:
        await upload(client, replay_document)

        response = await client.post(f"/api/replays/players/{BOB_GUID}/redact")

        assert response.json()["data"] == 1


class TestLeaderboardRoutes:
    async def test_selected_statistics(
        self, client: httpx.AsyncClient, replay_document: str
    ) -> None:
        await upload(client, replay_document)

        response = await client.get("/api/leaderboards/", params={"statistics": ["deaths"]})

        data = response.json()["data"]
        assert data["is_cache"] is False
        (board,) = data["leaderboards"]
        assert board["name"] == "Most deaths"
        assert board["data"][BOB_GUID]["count"] == 1

    async def test_unknown_statistic(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/leaderboards/", params={"statistics": ["kills"]})

        assert response.status_code == 422
