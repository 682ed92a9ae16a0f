"""Error taxonomy for the relay and the game sessions."""

from __future__ import annotations


class PuttPartyError(Exception):
    """Base class for recoverable, per-connection or per-shot failures."""


class RoomNotFound(PuttPartyError):
    """Raised when a socket tries to join a room id that does not exist.

    Attributes:
        room_id: The requested room id.
    """

    message = "Room does not exist"

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"{self.message}: {room_id}")


class RoomCapacityExceeded(PuttPartyError):
    """Raised when no room can be created because the directory is full."""

    message = "Server is currently at capacity. Please try again later."

    def __init__(self, max_rooms: int) -> None:
        self.max_rooms = max_rooms
        super().__init__(f"{self.message} (max_rooms={max_rooms})")


class InvalidPayload(PuttPartyError):
    """Raised when a network payload fails validation.

    Attributes:
        event: Event name the payload arrived with.
        reason: Human readable validation failure.
    """

    def __init__(self, event: str, reason: str) -> None:
        self.event = event
        self.reason = reason
        super().__init__(f"Invalid {event} payload: {reason}")


class ShotRejected(PuttPartyError):
    """Raised when a shot arrives while the ball is not ready to be hit.

    Attributes:
        reason: Machine readable reason ("no_ball", "ball_in_motion", "course_completed").
    """

    MESSAGES = {
        "no_ball": "Ball is not on the course yet",
        "ball_in_motion": "Wait for the ball to stop",
        "course_completed": "Hole already complete",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(self.MESSAGES.get(reason, reason))


class SwingTooShort(PuttPartyError):
    """Raised when a swing history holds fewer samples than required."""

    def __init__(self, sample_count: int, min_samples: int) -> None:
        self.sample_count = sample_count
        self.min_samples = min_samples
        super().__init__(
            f"Swing has {sample_count} samples, at least {min_samples} required"
        )
