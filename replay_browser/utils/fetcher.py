import anyio
import httpx

from replay_browser.core.config import settings
from replay_browser.core.exceptions import SourceUnavailableError


async def fetch_replay(source: str) -> bytes:
    """Download a replay from a URL, or read it from disk for a local path.

    Raises:
        SourceUnavailableError: If the replay could not be read
    """
    if not source.startswith(("http://", "https://")):
        try:
            return await anyio.Path(source.removeprefix("file://")).read_bytes()
        except OSError as e:
            raise SourceUnavailableError(source, str(e)) from e

    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(source, timeout=settings.fetch_timeout_seconds)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as e:
        raise SourceUnavailableError(source, str(e) or type(e).__name__) from e
