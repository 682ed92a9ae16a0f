"""
Wire protocol for the Putt Party relay.

Every ZeroMQ message carries two frames after the routing identity:
the UTF-8 event name and a msgpack-encoded payload (empty for events
without a payload). Payload keys are camelCase on the wire; the helpers
below convert to and from the snake_case types used in Python.
"""

import math
from typing import Any

import msgpack

from .errors import InvalidPayload
from .types import hole_result, vector3

# Event names
JOIN_ROOM = "joinRoom"
ROOM_JOINED = "roomJoined"
ROOM_ERROR = "roomError"
ORIENTATION = "orientation"
AIM_START = "aim_start"
SWING_DATA = "swing_data"
THROW = "throw"
HOLE_COMPLETE = "holeComplete"
GAME_COMPLETE = "gameComplete"
HEARTBEAT = "heartbeat"
DISCONNECT = "disconnect"

# Events the relay forwards between room members
RELAYED_EVENTS = frozenset(
    {ORIENTATION, THROW, AIM_START, SWING_DATA, HOLE_COMPLETE, GAME_COMPLETE}
)

# Relayed to the whole room, sender included
ECHO_TO_SENDER_EVENTS = frozenset({THROW})

# Events whose payload must be an {x, y, z} vector
VECTOR_EVENTS = frozenset({ORIENTATION, THROW})


def encode_payload(payload: Any) -> bytes:
    """Serialize a payload; None becomes an empty frame."""
    if payload is None:
        return b""
    return msgpack.packb(payload, use_bin_type=True)


def decode_payload(data: bytes) -> Any:
    """Deserialize a payload frame; an empty frame decodes to None."""
    if not data:
        return None
    return msgpack.unpackb(data, raw=False)


def encode_frames(event: str, payload: Any = None) -> list[bytes]:
    """Build the [event, payload] frames for one message."""
    return [event.encode("utf-8"), encode_payload(payload)]


def decode_frames(frames: list[bytes]) -> tuple[str, Any]:
    """Parse [event, payload?] frames.

    Raises:
        InvalidPayload: If the frames are missing or cannot be decoded.
    """
    if not frames:
        raise InvalidPayload("<none>", "empty message")
    try:
        event = frames[0].decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidPayload("<undecodable>", f"event name is not UTF-8: {e}") from e
    try:
        payload = decode_payload(frames[1]) if len(frames) > 1 else None
    except Exception as e:
        raise InvalidPayload(event, f"payload is not msgpack: {e}") from e
    return event, payload


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_numbers(event: str, payload: Any, keys: tuple[str, ...]) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidPayload(event, f"expected an object, got {type(payload).__name__}")
    for key in keys:
        if key not in payload:
            raise InvalidPayload(event, f"missing '{key}'")
        if not is_finite_number(payload[key]):
            raise InvalidPayload(event, f"'{key}' is not a finite number: {payload[key]!r}")
    return payload


def validate_vector_payload(event: str, payload: Any) -> dict[str, Any]:
    """Check an orientation/throw payload carries finite numeric x, y and z."""
    payload = _require_numbers(event, payload, ("x", "y", "z"))
    if "power" in payload and not is_finite_number(payload["power"]):
        raise InvalidPayload(event, f"'power' is not a finite number: {payload['power']!r}")
    return payload


def validate_swing_payload(payload: Any) -> dict[str, Any]:
    """Check a swing_data payload carries finite numeric deviation and power."""
    return _require_numbers(SWING_DATA, payload, ("deviation", "power"))


def validate_relay_payload(event: str, payload: Any) -> Any:
    """Validate the payload of a relayed event before it reaches other sockets."""
    if event in VECTOR_EVENTS:
        return validate_vector_payload(event, payload)
    if event == SWING_DATA:
        return validate_swing_payload(payload)
    return payload


def parse_room_id(payload: Any) -> str:
    """Extract the room id of a joinRoom payload (bare string or {roomId})."""
    if isinstance(payload, dict):
        payload = payload.get("roomId")
    if not isinstance(payload, str) or not payload.strip():
        raise InvalidPayload(JOIN_ROOM, "room id must be a non-empty string")
    return payload.strip().lower()


def vector_to_wire(v: vector3, power: float | None = None) -> dict[str, float]:
    """Convert a vector (and optional power) to the wire format."""
    result = {"x": v.x, "y": v.y, "z": v.z}
    if power is not None:
        result["power"] = power
    return result


def vector_from_wire(data: dict[str, Any]) -> vector3:
    """Convert a validated {x, y, z} payload to a vector."""
    return vector3(x=float(data["x"]), y=float(data["y"]), z=float(data["z"]))


def swing_to_wire(deviation: float, power: float) -> dict[str, float]:
    return {"deviation": deviation, "power": power}


def hole_complete_to_wire(
    result: hole_result, total_score: int, score_name: str
) -> dict[str, Any]:
    """Score payload of a holeComplete event."""
    return {
        "hole": result.hole_number,
        "strokes": result.strokes,
        "par": result.par,
        "totalScore": total_score,
        "scoreName": score_name,
    }


def game_complete_to_wire(
    total_score: int, total_par: int, results: list[hole_result]
) -> dict[str, Any]:
    """Score payload of a gameComplete event."""
    return {
        "totalScore": total_score,
        "totalPar": total_par,
        "scoreVsPar": total_score - total_par,
        "holes": [
            {"hole": r.hole_number, "strokes": r.strokes, "par": r.par}
            for r in results
        ],
    }
