"""Turns raw replay documents into ``ReplayCreate`` objects.

Everything here is a pure transform: reading the bytes is the caller's job.
"""

import datetime
import io
import posixpath
import re
import zipfile
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlsplit

import yaml
from loguru import logger
from pydantic import ValidationError

from replay_browser.core.config import DEFAULT_REPLAY_REGEX, StorageUrl, settings
from replay_browser.core.exceptions import InvalidEventPayloadError, MalformedDocumentError
from replay_browser.schemas.replay import PlayerCreate, ReplayCreate, ReplayMetadata, SkippedEvent
from replay_browser.schemas.replay_event import EVENT_TYPE_KEY, ReplayEvent, decode_event
from replay_browser.utils.misc import as_utc

REPLAY_DOCUMENT_NAME = "_replay/replay_final.yml"

# Tried in order, the first format that parses wins
REPLAY_DATE_FORMATS = ("%Y_%m_%d-%H_%M", "%Y-%m-%d")

TYPE_TAG_PREFIX = "!type:"


class ReplayYamlLoader(yaml.SafeLoader):
    """Safe loader that keeps ``!type:<Name>`` tags as a ``type`` key on the mapping."""


def _construct_typed_node(
    loader: yaml.SafeLoader, suffix: str, node: yaml.Node
) -> dict[str, Any]:
    if isinstance(node, yaml.MappingNode):
        data = loader.construct_mapping(node, deep=True)
        return {EVENT_TYPE_KEY: suffix, **data}
    return {EVENT_TYPE_KEY: suffix}


def _construct_unknown_tag(loader: yaml.SafeLoader, _suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)  # pyright: ignore[reportArgumentType]


ReplayYamlLoader.add_multi_constructor(TYPE_TAG_PREFIX, _construct_typed_node)
ReplayYamlLoader.add_multi_constructor("!", _construct_unknown_tag)


def read_replay_document(raw: bytes | str) -> str:
    """Return the YAML text of a replay, unpacking it from a replay archive if needed."""
    if isinstance(raw, str):
        return raw

    if zipfile.is_zipfile(io.BytesIO(raw)):
        try:
            with zipfile.ZipFile(io.BytesIO(raw)) as archive:
                names = archive.namelist()
                name = next(
                    (n for n in names if n == REPLAY_DOCUMENT_NAME),
                    next((n for n in names if n.endswith("replay_final.yml")), None),
                )
                if name is None:
                    msg = f"Replay archive does not contain {REPLAY_DOCUMENT_NAME}"
                    raise MalformedDocumentError(msg)
                raw = archive.read(name)
        except (zipfile.BadZipFile, OSError) as e:
            msg = f"Could not read replay archive: {e}"
            raise MalformedDocumentError(msg) from e

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        msg = f"Replay document is not valid UTF-8: {e}"
        raise MalformedDocumentError(msg) from e


def get_storage_url(link: str, storage_urls: Sequence[StorageUrl]) -> StorageUrl | None:
    return next((s for s in storage_urls if link.startswith(s.url)), None)


def parse_replay_date(
    link: str | None, storage_urls: Sequence[StorageUrl] | None = None
) -> datetime.datetime | None:
    """Extract the round date from a replay link's file name, as UTC.

    The fine-grained ``2024_05_01-14_30`` form is tried before the date-only
    ``2024-05-01`` form.
    """
    if not link:
        return None

    if storage_urls is None:
        storage_urls = settings.storage_urls
    storage_url = get_storage_url(link, storage_urls)
    pattern = storage_url.replay_regex if storage_url else DEFAULT_REPLAY_REGEX

    file_name = posixpath.basename(urlsplit(link).path)
    match = re.search(pattern, file_name)
    if match is None:
        return None
    fragment = match.group(1) if match.groups() else match.group(0)
    if fragment is None:
        return None

    for date_format in REPLAY_DATE_FORMATS:
        try:
            return as_utc(datetime.datetime.strptime(fragment, date_format))  # noqa: DTZ007
        except ValueError:
            continue

    logger.debug(f"No known date format matches {fragment!r} in {link}")
    return None


def _decode_participants(raw_players: Any) -> list[PlayerCreate]:
    if raw_players is None:
        return []
    if not isinstance(raw_players, list):
        msg = f"roundEndPlayers must be a list, got {type(raw_players).__name__}"
        raise MalformedDocumentError(msg)

    players: list[PlayerCreate] = []
    for index, raw_player in enumerate(raw_players):
        try:
            players.append(PlayerCreate.model_validate(raw_player))
        except ValidationError as e:
            logger.warning(f"Skipping participant #{index}: {e.errors(include_url=False)}")
    return players


def _decode_events(
    raw_events: Any, *, strict: bool
) -> tuple[list[ReplayEvent], list[SkippedEvent]]:
    if raw_events is None:
        return [], []
    if not isinstance(raw_events, list):
        msg = f"events must be a list, got {type(raw_events).__name__}"
        raise MalformedDocumentError(msg)

    events: list[ReplayEvent] = []
    skipped: list[SkippedEvent] = []
    for index, raw_event in enumerate(raw_events):
        try:
            events.append(decode_event(raw_event))
        except InvalidEventPayloadError as e:
            if strict:
                raise
            logger.warning(f"Skipping event #{index}: {e}")
            skipped.append(SkippedEvent(index=index, event_type=e.event_type, reason=str(e)))
    return events, skipped


def decode_replay(
    raw: bytes | str,
    link: str | None = None,
    *,
    strict: bool = False,
    storage_urls: Sequence[StorageUrl] | None = None,
) -> ReplayCreate:
    """Decode a replay document.

    Args:
        raw: The YAML document, or the bytes of a replay archive.
        link: Where the replay came from. Overrides the document's own ``link``.
        strict: Raise on the first bad event instead of skipping it.
        storage_urls: Storage locations used to find the date in the link. Defaults to
            the configured ones.

    Raises:
        MalformedDocumentError: If the document is unreadable or not a replay.
        InvalidEventPayloadError: In strict mode, if an event cannot be decoded.
    """
    text = read_replay_document(raw)
    try:
        tree = yaml.load(text, Loader=ReplayYamlLoader)  # noqa: S506
    except yaml.YAMLError as e:
        msg = f"Replay document is not valid YAML: {e}"
        raise MalformedDocumentError(msg) from e

    if not isinstance(tree, dict):
        msg = f"Replay document must be a mapping, got {type(tree).__name__}"
        raise MalformedDocumentError(msg)

    try:
        metadata = ReplayMetadata.model_validate(tree)
    except ValidationError as e:
        msg = f"Replay metadata is invalid: {e.errors(include_url=False)}"
        raise MalformedDocumentError(msg) from e

    players = _decode_participants(tree.get("roundEndPlayers"))
    events, skipped = _decode_events(tree.get("events"), strict=strict)

    link = link or metadata.link
    date = parse_replay_date(link, storage_urls) or metadata.date

    return ReplayCreate.model_validate(
        metadata.model_dump()
        | {
            "link": link,
            "date": date,
            "round_participants": players,
            "events": events,
            "skipped_events": skipped,
        }
    )
