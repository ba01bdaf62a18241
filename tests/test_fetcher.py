from pathlib import Path

import pytest

from replay_browser.core.exceptions import SourceUnavailableError
from replay_browser.utils.fetcher import fetch_replay


async def test_reads_local_file(tmp_path: Path) -> None:
    replay_file = tmp_path / "2024_05_01-14_30.yml"
    replay_file.write_bytes(b"roundId: 1\n")

    assert await fetch_replay(str(replay_file)) == b"roundId: 1\n"
    assert await fetch_replay(f"file://{replay_file}") == b"roundId: 1\n"


async def test_missing_file(tmp_path: Path) -> None:
    source = str(tmp_path / "missing.yml")

    with pytest.raises(SourceUnavailableError) as exc_info:
        await fetch_replay(source)

    assert exc_info.value.source == source
