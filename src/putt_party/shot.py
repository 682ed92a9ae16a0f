"""
Shot application on the display side.

A shot arrives either as a shot_descriptor (the swing path: final angle and
power computed on the controller) or as a raw velocity vector (the throw
path). Both end as a single impulse on the ball.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from .errors import ShotRejected
from .physics import wake_body
from .types import applied_impulse, shot_descriptor, vector3

logger = logging.getLogger(__name__)


def power_curve(normalized: float) -> float:
    """Soften light taps: quadratic below 0.5, linear above."""
    if normalized < 0.5:
        return normalized * normalized * 2.0
    return normalized


class ShotApplier:
    """Turns accepted shots into impulses on the session's ball."""

    def __init__(
        self,
        min_force: float = 0.5,
        max_force: float = 3.0,
        upward_component: float = 0.05,
        raw_magnitude_scale: float = 30.0,
    ):
        self.min_force = min_force
        self.max_force = max_force
        self.upward_component = upward_component
        self.raw_magnitude_scale = raw_magnitude_scale

    @classmethod
    def from_config(cls, config) -> ShotApplier:
        """Build from a GameConfig."""
        return cls(
            min_force=config.putt_min_force,
            max_force=config.putt_max_force,
            upward_component=config.putt_upward_component,
            raw_magnitude_scale=config.raw_magnitude_scale,
        )

    def check_ready(self, session: Any) -> None:
        """Raise ShotRejected unless the session's ball can be hit now."""
        if session.ball is None:
            raise ShotRejected("no_ball")
        if session.hole.ball_in_motion:
            raise ShotRejected("ball_in_motion")
        if session.hole.course_completed:
            raise ShotRejected("course_completed")

    def apply(
        self, shot: shot_descriptor | vector3, session: Any
    ) -> applied_impulse:
        """Apply a shot to session.ball.

        Args:
            shot: Swing result or raw throw velocity.
            session: Object exposing ball, hole (hole_state) and aim.

        Returns:
            The impulse handed to the physics engine.

        Raises:
            ShotRejected: If there is no ball, it is still moving, or the hole
                is already complete.
        """
        self.check_ready(session)

        if isinstance(shot, shot_descriptor):
            direction, force = self._from_descriptor(shot)
        else:
            direction, force = self._from_vector(shot, session)

        ball = session.ball
        ball.velocity = vector3()
        ball.angular_velocity = vector3()
        wake_body(ball)

        impulse = vector3(
            x=direction.x * force, y=self.upward_component, z=direction.z * force
        )
        ball.apply_impulse(impulse, ball.position.copy())

        logger.debug(
            f"Shot applied: force={force:.2f} "
            f"impulse=({impulse.x:.2f}, {impulse.y:.2f}, {impulse.z:.2f})"
        )
        return applied_impulse(impulse=impulse, force=force, direction=direction)

    def _from_descriptor(self, shot: shot_descriptor) -> tuple[vector3, float]:
        rad = math.radians(shot.final_angle)
        direction = vector3(x=math.sin(rad), y=0.0, z=math.cos(rad))
        # power above 1 is an overswing and may exceed max_force
        force = self.min_force + shot.power * (self.max_force - self.min_force)
        return direction, force

    def _from_vector(
        self, velocity: vector3, session: Any
    ) -> tuple[vector3, float]:
        magnitude = velocity.length()
        x, z = velocity.x, velocity.z

        aim = getattr(session, "aim", None)
        last = aim.last_direction if aim is not None else None
        if last is not None:
            horizontal = last.horizontal_length()
            if horizontal > 0:
                x = last.x / horizontal * magnitude
                z = last.z / horizontal * magnitude

        horizontal = math.hypot(x, z)
        if horizontal > 0:
            direction = vector3(x=x / horizontal, y=0.0, z=z / horizontal)
        else:
            direction = vector3()

        normalized = min(magnitude / self.raw_magnitude_scale, 1.0)
        force = self.min_force + power_curve(normalized) * (
            self.max_force - self.min_force
        )
        return direction, force
