import uuid

import pytest

from replay_browser.core.enums import MobState, ReplayEventSeverity, ReplayEventType
from replay_browser.core.exceptions import InvalidEventPayloadError, UnknownEventTypeError
from replay_browser.schemas.replay_event import (
    MobStateChangedEvent,
    decode_event,
    encode_event,
    parse_mob_state,
)
from tests.conftest import BOB_GUID


def make_raw_event(**overrides: object) -> dict[str, object]:
    raw: dict[str, object] = {
        "type": "MobStateChangedPlayerReplayEvent",
        "time": 12.5,
        "severity": "High",
        "target": {"playerGuid": BOB_GUID, "playerICName": "Bob", "playerOOCName": "bob"},
        "oldState": "Alive",
        "newState": "Dead",
    }
    raw.update(overrides)
    return raw


class TestParseMobState:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Alive", MobState.ALIVE),
            ("dead", MobState.DEAD),
            ("SoftCritical", MobState.CRITICAL),
            (3, MobState.DEAD),
            ("0", MobState.INVALID),
            (MobState.CRITICAL, MobState.CRITICAL),
        ],
    )
    def test_known_values(self, value: object, expected: MobState) -> None:
        assert parse_mob_state(value) is expected

    @pytest.mark.parametrize("value", ["Zombified", 7, True, None, 1.5])
    def test_unknown_values_are_rejected(self, value: object) -> None:
        with pytest.raises(ValueError, match="ob state"):
            parse_mob_state(value)


class TestDecodeEvent:
    def test_decodes_mob_state_change(self) -> None:
        event = decode_event(make_raw_event())

        assert isinstance(event, MobStateChangedEvent)
        assert event.event_type is ReplayEventType.MOB_STATE_CHANGED
        assert event.severity is ReplayEventSeverity.HIGH
        assert event.target.player_guid == uuid.UUID(BOB_GUID)
        assert event.old_state is MobState.ALIVE
        assert event.new_state is MobState.DEAD
        assert event.is_death

    def test_accepts_event_type_key(self) -> None:
        raw = make_raw_event()
        raw["event_type"] = raw.pop("type")

        assert decode_event(raw).new_state is MobState.DEAD

    def test_staying_dead_is_not_a_death(self) -> None:
        event = decode_event(make_raw_event(oldState="Dead", newState="Dead"))

        assert not event.is_death

    def test_unknown_discriminator(self) -> None:
        with pytest.raises(UnknownEventTypeError) as exc_info:
            decode_event(make_raw_event(type="ExplosionReplayEvent"))

        assert exc_info.value.event_type == "ExplosionReplayEvent"

    def test_unknown_mob_state_is_an_invalid_payload(self) -> None:
        with pytest.raises(InvalidEventPayloadError) as exc_info:
            decode_event(make_raw_event(newState="Ascended"))

        assert not isinstance(exc_info.value, UnknownEventTypeError)
        assert exc_info.value.event_type == ReplayEventType.MOB_STATE_CHANGED

    def test_missing_target(self) -> None:
        raw = make_raw_event()
        del raw["target"]

        with pytest.raises(InvalidEventPayloadError):
            decode_event(raw)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(InvalidEventPayloadError):
            decode_event(["MobStateChangedPlayerReplayEvent"])


class TestEncodeEvent:
    def test_round_trip(self) -> None:
        """Encoding then decoding gives back an equal event."""
        event = decode_event(make_raw_event(oldState="SoftCritical"))

        encoded = encode_event(event)

        assert encoded["type"] == "MobStateChangedPlayerReplayEvent"
        assert encoded["oldState"] == "Critical"
        assert encoded["target"]["playerGuid"] == BOB_GUID
        assert decode_event(encoded) == event
