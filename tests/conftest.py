"""Shared fixtures for Putt Party tests."""

from __future__ import annotations

from typing import Any

import pytest

from putt_party import wire
from putt_party.events import EventHandler
from putt_party.types import vector3


class FakeRelayClient:
    """In-memory stand-in for relay_client: records emits, injects events."""

    def __init__(self, room: str | None = "abcd1234"):
        self.room_id = room
        self.sent: list[tuple[str, Any]] = []
        self.pending: list[tuple[str, Any]] = []

        self.on_orientation = EventHandler("orientation")
        self.on_aim_start = EventHandler("aim_start")
        self.on_swing_data = EventHandler("swing_data")
        self.on_throw = EventHandler("throw")
        self._handlers = {
            wire.ORIENTATION: self.on_orientation,
            wire.AIM_START: self.on_aim_start,
            wire.SWING_DATA: self.on_swing_data,
            wire.THROW: self.on_throw,
        }

    def emit(self, event: str, payload: Any = None) -> bool:
        self.sent.append((event, payload))
        return True

    def events(self, name: str) -> list[Any]:
        return [p for e, p in self.sent if e == name]

    def send_orientation(self, direction: vector3) -> bool:
        return self.emit(wire.ORIENTATION, wire.vector_to_wire(direction))

    def send_aim_start(self) -> bool:
        return self.emit(wire.AIM_START)

    def send_swing_data(self, deviation: float, power: float) -> bool:
        return self.emit(wire.SWING_DATA, wire.swing_to_wire(deviation, power))

    def send_throw(self, velocity: vector3, power: float) -> bool:
        return self.emit(wire.THROW, wire.vector_to_wire(velocity, power))

    def send_hole_complete(self, payload: dict[str, Any]) -> bool:
        return self.emit(wire.HOLE_COMPLETE, payload)

    def send_game_complete(self, payload: dict[str, Any]) -> bool:
        return self.emit(wire.GAME_COMPLETE, payload)

    def queue(self, event: str, payload: Any = None) -> None:
        """Simulate an event arriving from the relay."""
        self.pending.append((event, payload))

    def dispatch_pending_events(self, max_items: int = 100) -> int:
        count = 0
        while self.pending and count < max_items:
            event, payload = self.pending.pop(0)
            self._handlers[event].invoke(payload)
            count += 1
        return count


@pytest.fixture
def fake_client() -> FakeRelayClient:
    return FakeRelayClient()
