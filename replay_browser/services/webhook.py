from collections.abc import Awaitable, Callable, Sequence

import httpx
from loguru import logger

from replay_browser.core.config import settings
from replay_browser.models.replay import Replay
from replay_browser.schemas.replay import ReplaySummary

type DeliverySink = Callable[[Replay], Awaitable[None]]


def summarize_replay(replay: Replay) -> ReplaySummary:
    return ReplaySummary(
        id=replay.id,
        link=replay.link,
        date=replay.date,
        server_id=replay.server_id,
        server_name=replay.server_name,
        round_id=replay.round_id,
        map=replay.map,
        gamemode=replay.gamemode,
        duration=replay.duration,
        participant_count=len(replay.round_participants),
        event_count=len(replay.events),
    )


class WebhookService:
    def __init__(self, webhook_urls: Sequence[str] | None = None) -> None:
        self.webhook_urls = list(settings.webhook_urls if webhook_urls is None else webhook_urls)

    async def send_replay_to_webhooks(self, replay: Replay) -> None:
        """POST a summary of a stored replay to every configured webhook.

        Raises:
            httpx.HTTPError: If any webhook could not be reached. The others are still sent.
        """
        if not self.webhook_urls:
            return

        body = summarize_replay(replay).model_dump(mode="json")
        errors: list[httpx.HTTPError] = []
        async with httpx.AsyncClient() as client:
            for url in self.webhook_urls:
                try:
                    response = await client.post(
                        url, json=body, timeout=settings.webhook_timeout_seconds
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"Webhook {url} rejected {replay}: {e}")
                    errors.append(e)

        if errors:
            raise errors[0]


async def notify_replay_ingested(replay: Replay, sink: DeliverySink | None = None) -> None:
    """Tell the delivery sink about a stored replay.

    Best-effort: the replay is already stored, so a failure here is logged and dropped.
    """
    deliver = sink or WebhookService().send_replay_to_webhooks
    try:
        await deliver(replay)
    except Exception:
        logger.exception(f"Error while sending {replay} to webhooks")
