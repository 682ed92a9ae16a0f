"""
Swing analysis: turns a buffered orientation history into a shot descriptor.

The power signal is the peak angular speed of the phone over the swing, so a
single fast wrist snap registers even when most of the gesture is a slow
backswing. Direction comes from the yaw change between the first and the last
sample, added to the locked aim angle.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from .errors import SwingTooShort
from .types import orientation_sample, shot_descriptor

logger = logging.getLogger(__name__)

MIN_SAMPLES = 5
SOLID_HIT_SPEED = 300.0  # deg/s mapped to power 1.0
MAX_POWER = 1.5


def normalize_angle(angle: float) -> float:
    """Wrap an angle difference into (-180, 180].

    350 -> 10 reads as +20, never -340.
    """
    wrapped = (angle + 540.0) % 360.0 - 180.0
    if wrapped == -180.0:
        return 180.0
    return wrapped


def normalize_heading(angle: float) -> float:
    """Wrap an absolute heading into [0, 360)."""
    return angle % 360.0


def peak_angular_speed(history: Sequence[orientation_sample]) -> float:
    """Maximum pitch/roll angular speed (deg/s) over consecutive sample pairs.

    Pairs with a non-positive time delta are skipped (sensor fusion jitter).
    """
    max_speed = 0.0
    for prev, curr in zip(history, history[1:]):
        dt = (curr.timestamp - prev.timestamp) / 1000.0
        if dt <= 0:
            continue
        d_beta = normalize_angle(curr.beta - prev.beta)
        d_gamma = normalize_angle(curr.gamma - prev.gamma)
        speed = math.sqrt(d_beta * d_beta + d_gamma * d_gamma) / dt
        if speed > max_speed:
            max_speed = speed
    return max_speed


def normalized_power(
    max_speed: float,
    solid_hit_speed: float = SOLID_HIT_SPEED,
    max_power: float = MAX_POWER,
) -> float:
    """Map peak angular speed to shot power in [0, max_power]."""
    return min(max(max_speed, 0.0) / solid_hit_speed, max_power)


def analyze_swing(
    history: Sequence[orientation_sample],
    locked_angle: float,
    min_samples: int = MIN_SAMPLES,
    solid_hit_speed: float = SOLID_HIT_SPEED,
    max_power: float = MAX_POWER,
) -> shot_descriptor:
    """Compute the shot descriptor of a completed swing.

    Args:
        history: Samples in arrival order.
        locked_angle: Aim angle frozen before the swing started.
        min_samples: Shorter histories are accidental taps, not swings.

    Returns:
        shot_descriptor with final_angle = locked_angle + deviation.

    Raises:
        SwingTooShort: If the history holds fewer than min_samples samples.
    """
    if not history or len(history) < min_samples:
        raise SwingTooShort(len(history), min_samples)

    deviation = normalize_angle(history[-1].alpha - history[0].alpha)
    power = normalized_power(peak_angular_speed(history), solid_hit_speed, max_power)
    return shot_descriptor(final_angle=locked_angle + deviation, power=power)


def swing_deviation(history: Sequence[orientation_sample]) -> float:
    """Yaw deviation of a swing, 0 for an empty history."""
    if not history:
        return 0.0
    return normalize_angle(history[-1].alpha - history[0].alpha)


class SwingAnalyzer:
    """Configured wrapper around analyze_swing that treats short swings as non-events."""

    def __init__(
        self,
        min_samples: int = MIN_SAMPLES,
        solid_hit_speed: float = SOLID_HIT_SPEED,
        max_power: float = MAX_POWER,
    ):
        self.min_samples = min_samples
        self.solid_hit_speed = solid_hit_speed
        self.max_power = max_power

    @classmethod
    def from_config(cls, config) -> SwingAnalyzer:
        """Build from a ControllerConfig."""
        return cls(
            min_samples=config.swing_min_samples,
            solid_hit_speed=config.swing_solid_hit_speed,
            max_power=config.swing_power_cap,
        )

    def analyze(
        self, history: Sequence[orientation_sample], locked_angle: float
    ) -> shot_descriptor | None:
        """Return the shot descriptor, or None when the swing was too short."""
        try:
            return analyze_swing(
                history,
                locked_angle,
                min_samples=self.min_samples,
                solid_hit_speed=self.solid_hit_speed,
                max_power=self.max_power,
            )
        except SwingTooShort as e:
            logger.debug(f"Ignoring swing: {e}")
            return None
