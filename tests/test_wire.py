"""Tests for the relay wire format and payload validation."""

import math

import msgpack
import pytest

from putt_party import wire
from putt_party.errors import InvalidPayload
from putt_party.types import hole_result, vector3


class TestFrames:
    """Tests for frame encoding."""

    def test_payload_is_msgpack(self):
        frames = wire.encode_frames(wire.SWING_DATA, {"deviation": 1.5, "power": 0.5})
        assert frames[0] == b"swing_data"
        assert msgpack.unpackb(frames[1], raw=False) == {"deviation": 1.5, "power": 0.5}

    def test_none_payload_is_empty_frame(self):
        assert wire.encode_frames(wire.AIM_START) == [b"aim_start", b""]
        assert wire.decode_frames([b"aim_start", b""]) == ("aim_start", None)

    def test_missing_payload_frame(self):
        assert wire.decode_frames([b"heartbeat"]) == ("heartbeat", None)

    def test_bare_string_payload(self):
        frames = wire.encode_frames(wire.JOIN_ROOM, "abcd1234")
        assert wire.decode_frames(frames) == ("joinRoom", "abcd1234")

    def test_empty_message_rejected(self):
        with pytest.raises(InvalidPayload):
            wire.decode_frames([])

    def test_garbage_payload_rejected(self):
        with pytest.raises(InvalidPayload) as exc_info:
            wire.decode_frames([b"throw", b"\xc1"])
        assert exc_info.value.event == "throw"

    def test_non_utf8_event_rejected(self):
        with pytest.raises(InvalidPayload):
            wire.decode_frames([b"\xff\xfe", b""])


class TestValidation:
    """Tests for numeric payload checks."""

    def test_vector_ok(self):
        payload = {"x": 1, "y": 0.5, "z": -2.0}
        assert wire.validate_vector_payload(wire.ORIENTATION, payload) is payload

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "x=1",
            [1, 2, 3],
            {"x": 1, "y": 2},
            {"x": "1", "y": 2, "z": 3},
            {"x": math.nan, "y": 2, "z": 3},
            {"x": math.inf, "y": 2, "z": 3},
            {"x": True, "y": 2, "z": 3},
            {"x": 1, "y": 2, "z": 3, "power": math.nan},
        ],
    )
    def test_vector_rejected(self, payload):
        with pytest.raises(InvalidPayload):
            wire.validate_vector_payload(wire.THROW, payload)

    def test_swing_payload(self):
        wire.validate_swing_payload({"deviation": -3.0, "power": 1.2})
        with pytest.raises(InvalidPayload):
            wire.validate_swing_payload({"deviation": -3.0})
        with pytest.raises(InvalidPayload):
            wire.validate_swing_payload({"deviation": math.nan, "power": 1.0})

    def test_score_events_pass_through(self):
        payload = {"hole": 1}
        assert wire.validate_relay_payload(wire.HOLE_COMPLETE, payload) is payload
        assert wire.validate_relay_payload(wire.AIM_START, None) is None


class TestRoomId:
    """Tests for joinRoom payload parsing."""

    def test_bare_string_is_lowercased(self):
        assert wire.parse_room_id("  ABCD1234 ") == "abcd1234"

    def test_object_form(self):
        assert wire.parse_room_id({"roomId": "abcd1234"}) == "abcd1234"

    @pytest.mark.parametrize("payload", [None, "", "   ", {}, {"roomId": 5}])
    def test_missing_room_id(self, payload):
        with pytest.raises(InvalidPayload):
            wire.parse_room_id(payload)


class TestAdapters:
    """Tests for wire conversions."""

    def test_vector_roundtrip_with_power(self):
        data = wire.vector_to_wire(vector3(1.0, 2.0, 3.0), power=15.0)
        assert data == {"x": 1.0, "y": 2.0, "z": 3.0, "power": 15.0}
        assert wire.vector_from_wire(data) == vector3(1.0, 2.0, 3.0)

    def test_hole_complete_payload(self):
        payload = wire.hole_complete_to_wire(hole_result(2, 4, 3), 7, "Bogey")
        assert payload == {
            "hole": 2,
            "strokes": 4,
            "par": 3,
            "totalScore": 7,
            "scoreName": "Bogey",
        }

    def test_game_complete_payload(self):
        results = [hole_result(1, 2, 2), hole_result(2, 4, 3)]
        payload = wire.game_complete_to_wire(6, 5, results)
        assert payload["scoreVsPar"] == 1
        assert payload["holes"][1] == {"hole": 2, "strokes": 4, "par": 3}
