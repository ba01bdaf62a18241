import asyncio
import threading
from collections.abc import Awaitable, Callable

from fastapi import Request
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.core.config import settings
from replay_browser.core.db import get_session
from replay_browser.core.exceptions import ReplayError, SourceUnavailableError, StoreFailureError
from replay_browser.models.replay import Replay
from replay_browser.schemas.ingestion import DrainReport, FailedSource, ParserStatus
from replay_browser.schemas.replay import ReplayCreate
from replay_browser.services.replay import ReplayService
from replay_browser.services.replay_decoder import decode_replay
from replay_browser.services.webhook import DeliverySink, notify_replay_ingested
from replay_browser.utils.fetcher import fetch_replay

type Fetcher = Callable[[str], Awaitable[bytes]]
type SessionFactory = Callable[[], AsyncSession]


class ReplayParserService:
    """Queue of replay sources drained by at most one consumer at a time.

    Callers ``enqueue`` sources and then ``request_drain``. Only the call that moves the
    parser from idle to draining gets ``True`` and must run ``drain``; every other call
    gets ``False`` while that drain is active. The queue and the draining flag share one
    lock, which is never held across I/O.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        session_factory: SessionFactory = get_session,
        fetcher: Fetcher = fetch_replay,
        delivery: DeliverySink | None = None,
        max_attempts: int = settings.ingest_max_attempts,
        retry_backoff_seconds: float = settings.ingest_retry_backoff_seconds,
    ) -> None:
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.delivery = delivery
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

        self._queue: list[str] = []
        self._lock = threading.Lock()
        self._draining = False
        self._stop_requested = False
        self._closed = False
        self._task: asyncio.Task[DrainReport] | None = None
        self.last_report: DrainReport | None = None

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return list(self._queue)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    def status(self) -> ParserStatus:
        with self._lock:
            return ParserStatus(
                is_draining=self._draining, pending=list(self._queue), last_report=self.last_report
            )

    def enqueue(self, source: str) -> None:
        with self._lock:
            self._queue.append(source)

    def request_drain(self) -> bool:
        """Try to become the active drainer. Returns False if a drain is already running."""
        with self._lock:
            if self._draining or self._closed:
                return False
            self._draining = True
            self._stop_requested = False
            return True

    def request_queue_consumption(self) -> bool:
        """Win the drain and run it as a background task on the running event loop."""
        if not self.request_drain():
            return False

        self._task = asyncio.get_running_loop().create_task(self.drain())
        return True

    async def stop(self) -> None:
        """Stop after the source being processed and refuse any later drain.

        Sources still queued stay queued.
        """
        with self._lock:
            self._stop_requested = True
            self._closed = True
        if self._task is not None and not self._task.done():
            await self._task

    def _pop_next(self, report: DrainReport) -> str | None:
        with self._lock:
            if self._stop_requested or not self._queue:
                report.stopped = bool(self._queue)
                self._draining = False
                return None
            return self._queue.pop(0)

    async def drain(self) -> DrainReport:
        """Process queued sources until the queue is empty or a stop is requested.

        A failing source is recorded in the report and never ends the drain.
        """
        if not self.is_draining:
            msg = "drain() must only be called after winning request_drain()"
            raise RuntimeError(msg)

        report = DrainReport()
        logger.info("Replay parser started draining the queue")
        try:
            while (source := self._pop_next(report)) is not None:
                try:
                    replay = await self.ingest(source)
                except ReplayError as e:
                    logger.error(f"Failed to ingest {source}: {e}")
                    report.failed.append(FailedSource(source=source, reason=str(e)))
                except Exception as e:
                    logger.exception(f"Unexpected error while ingesting {source}")
                    report.failed.append(FailedSource(source=source, reason=repr(e)))
                else:
                    report.ingested.append(replay.id)
        except BaseException:
            with self._lock:
                self._draining = False
            raise

        self.last_report = report
        logger.info(
            f"Replay parser finished: {len(report.ingested)} ingested, "
            f"{len(report.failed)} failed"
        )
        return report

    async def ingest(self, source: str) -> Replay:
        """Fetch, decode, store and announce one replay.

        Fetching and storing are retried; a document that fails to decode is not.
        """
        raw = await self._with_retries(
            source, lambda: self.fetcher(source), retry_on=SourceUnavailableError
        )
        loop = asyncio.get_running_loop()
        replay_create = await loop.run_in_executor(None, decode_replay, raw, source)
        if replay_create.skipped_events:
            logger.warning(
                f"{len(replay_create.skipped_events)} events of {source} could not be decoded"
            )

        replay = await self._with_retries(
            source, lambda: self._store(replay_create), retry_on=StoreFailureError
        )
        logger.info(f"Parsed {replay}")

        await notify_replay_ingested(replay, self.delivery)
        return replay

    async def _store(self, replay: ReplayCreate) -> Replay:
        async with self.session_factory() as session:
            return await ReplayService(session).save_replay(replay)

    async def _with_retries[T](
        self,
        source: str,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: type[ReplayError],
    ) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                delay = self.retry_backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} for {source} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                attempt += 1
                if delay > 0:
                    await asyncio.sleep(delay)


def get_replay_parser(request: Request) -> ReplayParserService:
    return request.app.state.replay_parser
