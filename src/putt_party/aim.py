"""
Aim handling on both sides of the relay.

Controller side: HeadingStreamer resolves a heading from whichever sensor
signals the phone exposes and emits a direction vector at a fixed cadence.

Display side: AimController owns the session's aim_state. It rotates every
received direction by the snap offset, freezes the heading when aiming stops
and remembers the last aim direction for shots.
"""

from __future__ import annotations

import math
from enum import Enum

from .swing import normalize_heading
from .types import aim_state, orientation_reading, vector3


def resolve_heading(reading: orientation_reading) -> float:
    """Heading in degrees: compass > absolute orientation > alpha > 0."""
    if reading.compass_heading is not None:
        return reading.compass_heading
    if reading.absolute_alpha is not None:
        return reading.absolute_alpha
    if reading.alpha is not None:
        return reading.alpha
    return 0.0


def tilt_power(beta: float) -> float:
    """Arrow length from phone tilt, 10 when held at 45 degrees."""
    return 10.0 + abs(beta - 45.0) / 45.0 * 5.0


def heading_to_direction(heading: float, power: float = 1.0) -> vector3:
    """Direction vector for a heading (0 = +z, 90 = +x) with a small lift."""
    rad = math.radians(heading)
    return vector3(x=math.sin(rad) * power, y=0.1 * power, z=math.cos(rad) * power)


def direction_heading(v: vector3) -> float:
    """Heading of the horizontal part of a direction vector, in degrees."""
    return math.degrees(math.atan2(v.x, v.z))


class HeadingStreamer:
    """Controller-side heading calibration and rate-limited direction stream."""

    def __init__(self, rate_hz: float = 20.0, invert: bool = False):
        self.interval_ms = 1000.0 / rate_hz
        self.invert = invert
        self.reference_angle = 0.0
        self._last_emit: float | None = None

    @classmethod
    def from_config(cls, config) -> HeadingStreamer:
        """Build from a ControllerConfig."""
        return cls(rate_hz=config.orientation_rate_hz, invert=config.invert_direction)

    def calibrate(self, reading: orientation_reading) -> float:
        """Treat the current physical heading as straight ahead."""
        self.reference_angle = resolve_heading(reading)
        return self.reference_angle

    def relative_heading(self, reading: orientation_reading) -> float:
        angle = resolve_heading(reading) - self.reference_angle
        if self.invert:
            angle += 180.0
        return normalize_heading(angle)

    def direction(self, reading: orientation_reading) -> vector3:
        return heading_to_direction(
            self.relative_heading(reading), tilt_power(reading.beta)
        )

    def due(self, now_ms: float) -> bool:
        """True at most once per interval; marks the emission when True.

        A timestamp older than the last emission re-anchors the gate, since
        sensor clocks may jump backwards.
        """
        if (
            self._last_emit is None
            or now_ms < self._last_emit
            or now_ms - self._last_emit >= self.interval_ms
        ):
            self._last_emit = now_ms
            return True
        return False

    def poll(self, reading: orientation_reading, now_ms: float) -> vector3 | None:
        """Direction to emit now, or None when the previous one is too recent."""
        if not self.due(now_ms):
            return None
        return self.direction(reading)

    def reset(self) -> None:
        self._last_emit = None


class AimPhase(Enum):
    IDLE = "idle"
    AIMING = "aiming"
    LOCKED = "locked"


class AimController:
    """Display-side aim state machine: IDLE -> AIMING -> LOCKED."""

    def __init__(self, state: aim_state | None = None):
        self.state = state if state is not None else aim_state()
        self.phase = AimPhase.IDLE
        self.last_direction: vector3 | None = None
        self._current_heading = 0.0

    @property
    def locked_angle(self) -> float:
        return self.state.locked_angle

    def current_heading(self) -> float:
        """Latest adjusted heading in [0, 360)."""
        return self._current_heading

    def start_aiming(self) -> None:
        """IDLE/LOCKED -> AIMING."""
        self.phase = AimPhase.AIMING

    def stop_aiming(self) -> float:
        """AIMING -> LOCKED, freezing the current heading as the locked angle.

        Returns:
            The locked angle (unchanged when not aiming).
        """
        if self.phase is AimPhase.AIMING:
            self.state.locked_angle = self._current_heading
            self.phase = AimPhase.LOCKED
        return self.state.locked_angle

    def release(self) -> None:
        """Back to IDLE after a shot; the snap offset stays in place."""
        self.phase = AimPhase.IDLE

    def request_snap_to_target(self, target_angle: float) -> None:
        """Re-zero the stream so the next sample points at target_angle."""
        self.state.pending_snap = True
        self.state.target_snap_angle = target_angle

    def on_heading_sample(self, direction: vector3) -> vector3 | None:
        """Apply the snap offset to a streamed direction.

        Returns:
            The adjusted direction, or None while the aim is locked.
        """
        if self.phase is AimPhase.LOCKED:
            return None

        raw = direction_heading(direction)
        if self.state.pending_snap:
            self.state.aim_offset = self.state.target_snap_angle - raw
            self.state.pending_snap = False

        adjusted = raw + self.state.aim_offset
        magnitude = direction.horizontal_length()
        rad = math.radians(adjusted)
        result = vector3(
            x=math.sin(rad) * magnitude, y=direction.y, z=math.cos(rad) * magnitude
        )

        self._current_heading = normalize_heading(adjusted)
        self.last_direction = result
        return result
