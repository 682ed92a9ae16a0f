"""
Hole state machine of the display session.

Driven once per physics tick: it watches the ball for out-of-bounds, settling
and sinking, counts strokes and moves the game from hole to hole. Presentation
(sink animation, score popups, network notifications) hangs off its event
handlers and is never waited on.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import Any

from .events import EventHandler
from .physics import wake_body
from .types import hole_result, vector3

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class HoleStateMachine:
    """Stroke counting, hole detection and course advance for one session.

    The session object must expose ``ball``, ``hole`` (hole_state), ``tee``,
    ``cup``, ``scorecard`` and ``load_layout(layout)``.

    Events:
        on_hole_complete(result, total_score, score_name)
        on_game_complete(total_score, total_par, results)
        on_sink_animation(ball, cup)
        on_penalty(stroke_count)
        on_ready()
        on_hole_started(layout)
    """

    def __init__(
        self,
        session: Any,
        config,
        course_factory,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.session = session
        self.config = config
        self.course_factory = course_factory
        self.clock = clock
        # Set by the session for the duration of one frame
        self.frame_time: float | None = None

        self.on_hole_complete = EventHandler("hole_complete")
        self.on_game_complete = EventHandler("game_complete")
        self.on_sink_animation = EventHandler("sink_animation")
        self.on_penalty = EventHandler("penalty")
        self.on_ready = EventHandler("ready")
        self.on_hole_started = EventHandler("hole_started")

    def now(self) -> float:
        """Current frame time, or the clock outside a frame."""
        if self.frame_time is not None:
            return self.frame_time
        return self.clock()

    @property
    def hole_radius(self) -> float:
        return self.config.hole_radius

    # Transitions

    def start_hole(self, index: int) -> None:
        """Build hole `index` and put a fresh ball on its tee."""
        hole = self.session.hole
        hole.current_course_index = index
        hole.stroke_count = 0
        hole.ball_in_motion = False
        hole.course_completed = False
        hole.advance_at = None

        layout = self.course_factory.build(index)
        hole.par = layout.par
        self.session.load_layout(layout)
        logger.info(f"Hole {index + 1}/{self.config.total_holes}, par {layout.par}")
        self.on_hole_started.invoke(layout)

    def restart(self) -> None:
        """Start a new game from the first hole."""
        hole = self.session.hole
        hole.total_score = 0
        hole.game_complete = False
        self.session.scorecard.reset()
        self.start_hole(0)

    def record_shot(self, now: float | None = None) -> int:
        """Count a stroke for a shot that was just applied.

        Returns:
            The new stroke count.
        """
        if now is None:
            now = self.now()
        hole = self.session.hole
        hole.stroke_count += 1
        hole.ball_in_motion = True
        hole.last_shot_time = now
        return hole.stroke_count

    def reset_ball_to_tee(self) -> None:
        ball = self.session.ball
        if ball is None:
            return
        tee = self.session.tee
        ball.position = vector3(tee.x, self.config.tee_drop_height, tee.z)
        ball.velocity = vector3()
        ball.angular_velocity = vector3()
        wake_body(ball)
        self.session.hole.ball_in_motion = False

    # Per-tick checks

    def tick(self, now: float | None = None) -> None:
        """Run out-of-bounds, settle, hole detection and advance in that order."""
        ball = self.session.ball
        if ball is None:
            return
        if now is None:
            now = self.now()
        hole = self.session.hole
        if hole.game_complete:
            return

        position = ball.position
        velocity = ball.velocity

        if not hole.course_completed:
            if not self._check_bounds(position, velocity, now):
                self._poll_hole(ball, position, velocity, now)

        if hole.advance_at is not None and now >= hole.advance_at:
            self._advance()

    def _check_bounds(self, position: vector3, velocity: vector3, now: float) -> bool:
        """Out-of-bounds reset, sub-surface recovery and settle.

        Returns:
            True when the ball was moved and this tick's readings are stale.
        """
        cfg = self.config
        hole = self.session.hole

        if (
            position.y < cfg.oob_min_y
            or abs(position.x) > cfg.oob_limit
            or abs(position.z) > cfg.oob_limit
        ):
            logger.info(
                f"Ball out of bounds at ({position.x:.1f}, {position.y:.1f}, "
                f"{position.z:.1f}), back to tee"
            )
            self.reset_ball_to_tee()
            if hole.stroke_count > 0:
                hole.stroke_count += 1
                self.on_penalty.invoke(hole.stroke_count)
            return True

        if cfg.recovery_min_y < position.y < cfg.recovery_max_y:
            # Fell through the green; lift it back up
            position.y = cfg.tee_drop_height
            velocity.y = abs(velocity.y)
            return True

        if (
            hole.ball_in_motion
            and velocity.length() < cfg.settle_speed
            and now - hole.last_shot_time > cfg.settle_grace_ms
        ):
            hole.ball_in_motion = False
            logger.debug(f"Ball settled after stroke {hole.stroke_count}")
            self.on_ready.invoke()
        return False

    def _poll_hole(
        self, ball: Any, position: vector3, velocity: vector3, now: float
    ) -> None:
        cfg = self.config
        cup = self.session.cup
        dx = position.x - cup.x
        dz = position.z - cup.z
        distance = math.hypot(dx, dz)
        horizontal_speed = math.hypot(velocity.x, velocity.z)

        attraction_radius = self.hole_radius * cfg.attraction_radius_factor
        if (
            distance < attraction_radius
            and horizontal_speed < cfg.attraction_max_speed
            and position.y < cfg.attraction_max_height
        ):
            factor = cfg.attraction_strength * (1.0 - distance / attraction_radius)
            ball.apply_force(
                vector3(x=-dx * factor, y=0.0, z=-dz * factor), position.copy()
            )

        if (
            distance < self.hole_radius * cfg.capture_radius_factor
            and horizontal_speed < cfg.capture_max_speed
            and position.y < cfg.capture_max_height
        ):
            self._holed(ball, now)

    def on_contact(self, body_a: Any, body_b: Any) -> None:
        """Physics contact observer; forgiving check when the ball hits the cup."""
        ball = self.session.ball
        if ball is None or self.session.hole.course_completed:
            return
        if body_a is not ball and body_b is not ball:
            return

        cfg = self.config
        cup = self.session.cup
        position = ball.position
        velocity = ball.velocity
        distance = math.hypot(position.x - cup.x, position.z - cup.z)
        horizontal_speed = math.hypot(velocity.x, velocity.z)

        if (
            horizontal_speed < cfg.contact_max_speed
            and distance < self.hole_radius * cfg.contact_radius_factor
        ):
            self._holed(ball, self.now())

    def _holed(self, ball: Any, now: float) -> None:
        hole = self.session.hole
        if hole.course_completed:
            return
        hole.course_completed = True
        hole.ball_in_motion = False
        hole.total_score += hole.stroke_count

        ball.velocity = vector3()
        ball.angular_velocity = vector3()

        result = hole_result(
            hole_number=hole.current_course_index + 1,
            strokes=hole.stroke_count,
            par=hole.par,
        )
        name = self.session.scorecard.record(result)
        hole.advance_at = now + self.config.advance_delay_ms

        logger.info(
            f"Hole {result.hole_number} complete in {result.strokes} "
            f"(par {result.par}, {name})"
        )
        self.on_sink_animation.invoke(ball, self.session.cup)
        self.on_hole_complete.invoke(result, hole.total_score, name)

    def _advance(self) -> None:
        hole = self.session.hole
        hole.advance_at = None
        next_index = hole.current_course_index + 1

        if next_index < self.config.total_holes:
            self.start_hole(next_index)
            return

        hole.game_complete = True
        scorecard = self.session.scorecard
        logger.info(
            f"Game complete: {hole.total_score} strokes, par {scorecard.total_par}"
        )
        self.on_game_complete.invoke(
            hole.total_score, scorecard.total_par, scorecard.results
        )
