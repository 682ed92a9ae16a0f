"""
Controller-side session: the phone that aims and swings.

Aiming streams a heading-derived direction to the display at a fixed rate.
A putt is the stretch between start_putt() and release_putt(): orientation
readings are buffered, analyzed on release, and the resulting deviation and
power are sent as swing_data. The display adds its own locked angle.
"""

from __future__ import annotations

import logging

from .aim import HeadingStreamer
from .config import ControllerConfig
from .sampler import OrientationSampler
from .swing import SwingAnalyzer
from .types import orientation_reading, shot_descriptor, vector3

logger = logging.getLogger(__name__)


class ControllerSession:
    """Aim stream and swing capture of one controller in one room."""

    def __init__(self, client, config: ControllerConfig | None = None):
        """
        Args:
            client: relay_client joined (or joining) the game room

        Raises:
            ValueError: If the client has no room id.
        """
        if not client.room_id:
            raise ValueError("Controller needs a room id; scan the display's QR code")
        self.client = client
        self.config = config or ControllerConfig()
        self.streamer = HeadingStreamer.from_config(self.config)
        self.sampler = OrientationSampler.from_config(self.config)
        self.analyzer = SwingAnalyzer.from_config(self.config)
        self.last_shot: shot_descriptor | None = None

    @property
    def is_swinging(self) -> bool:
        return self.sampler.is_swinging

    # Aim

    def calibrate(self, reading: orientation_reading) -> float:
        """Make the phone's current heading the straight-ahead direction."""
        angle = self.streamer.calibrate(reading)
        logger.info(f"Calibrated reference heading {angle:.1f}")
        return angle

    def begin_aim(self, reading: orientation_reading | None = None) -> None:
        """Tell the display aiming has started, optionally recalibrating first."""
        if reading is not None:
            self.calibrate(reading)
        self.streamer.reset()
        self.client.send_aim_start()

    def stream_heading(
        self, reading: orientation_reading, now_ms: float | None = None
    ) -> vector3 | None:
        """Forward the current heading when the stream interval has elapsed.

        Returns:
            The direction sent, or None when this reading was rate limited.
        """
        if now_ms is None:
            now_ms = reading.timestamp
        direction = self.streamer.poll(reading, now_ms)
        if direction is not None:
            self.client.send_orientation(direction)
        return direction

    # Putt

    def start_putt(self, reading: orientation_reading) -> None:
        self.sampler.begin(reading.to_sample())

    def add_reading(self, reading: orientation_reading) -> bool:
        return self.sampler.add(reading.to_sample())

    def release_putt(
        self, reading: orientation_reading | None = None
    ) -> shot_descriptor | None:
        """Finish the swing and send it to the display.

        Returns:
            The analyzed shot (final_angle is the deviation), or None when
            the swing was too short to count.
        """
        history = self.sampler.finish(reading.to_sample() if reading else None)
        shot = self.analyzer.analyze(history, locked_angle=0.0)
        if shot is None:
            return None

        self.client.send_swing_data(shot.final_angle, shot.power)
        self.last_shot = shot
        logger.info(
            f"Swing sent: deviation={shot.final_angle:.1f} power={shot.power:.2f} "
            f"({len(history)} samples)"
        )
        return shot

    def cancel_putt(self) -> None:
        self.sampler.cancel()

    def send_test_throw(self, reading: orientation_reading, power: float = 15.0) -> vector3:
        """Debug shot: a raw velocity along the current heading."""
        direction = self.streamer.direction(reading)
        horizontal = direction.horizontal_length() or 1.0
        velocity = vector3(
            x=direction.x / horizontal * power,
            y=0.1 * power,
            z=direction.z / horizontal * power,
        )
        self.client.send_throw(velocity, power)
        return velocity
