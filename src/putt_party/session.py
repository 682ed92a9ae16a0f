"""
Display-side game session.

One GameSession is the context of one game on the display: it owns the ball,
the tee and cup positions, the aim and hole state, and the scorecard, and
threads them through the aim controller, the shot applier and the hole state
machine. Relay events from the controller come in through the relay client;
score events go back out through it.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from . import wire
from .aim import AimController, AimPhase
from .course import LayoutCourseFactory, world_builder
from .errors import InvalidPayload, ShotRejected
from .events import EventHandler
from .hole import HoleStateMachine, monotonic_ms
from .physics import PhysicsWorld, SimpleBallWorld
from .scorecard import Scorecard
from .shot import ShotApplier
from .swing import MAX_POWER
from .types import applied_impulse, hole_layout, hole_state, shot_descriptor, vector3

logger = logging.getLogger(__name__)


class GameSession:
    """State and wiring of one game on the display."""

    def __init__(
        self,
        config,
        world: PhysicsWorld | None = None,
        client=None,
        course_factory=None,
        seed: int | None = None,
        clock=monotonic_ms,
    ):
        """
        Args:
            config: GameConfig
            world: Physics engine; a SimpleBallWorld when omitted
            client: relay_client of the display, or None for local play
            course_factory: CourseFactory; seeded layouts built into the world when omitted
            seed: Obstacle placement seed of the default course factory
            clock: Millisecond clock shared with the hole state machine
        """
        if client is not None and not client.room_id:
            raise ValueError("Display needs a room id; create a room first")

        self.config = config
        self.world = world or SimpleBallWorld(config.course_width, config.course_length)
        self.client = client
        self.clock = clock

        self.ball: Any = None
        self.tee = vector3()
        self.cup = vector3()
        self.layout: hole_layout | None = None

        self.hole = hole_state()
        self.aim = AimController()
        self.scorecard = Scorecard()
        self.shots = ShotApplier.from_config(config)

        if course_factory is None:
            course_factory = LayoutCourseFactory(
                config,
                builder=world_builder(self.world, config.hole_radius),
                seed=seed,
            )
        self.course_factory = course_factory
        self.state_machine = HoleStateMachine(self, config, course_factory, clock)

        # Events
        self.on_message = EventHandler("message")
        self.on_shot = EventHandler("shot")

        self._unsubscribers = [
            self.world.add_contact_observer(self.state_machine.on_contact),
            self.state_machine.on_hole_complete.add_listener(self._send_hole_complete),
            self.state_machine.on_game_complete.add_listener(self._send_game_complete),
            self.state_machine.on_penalty.add_listener(self._announce_penalty),
            self.state_machine.on_ready.add_listener(self._announce_ready),
        ]
        if client is not None:
            self._unsubscribers += [
                client.on_orientation.add_listener(self.handle_orientation),
                client.on_aim_start.add_listener(self.handle_aim_start),
                client.on_swing_data.add_listener(self.handle_swing_data),
                client.on_throw.add_listener(self.handle_throw),
            ]

    # Lifecycle

    def start(self) -> None:
        """Build the first hole."""
        self.state_machine.start_hole(0)

    def restart(self) -> None:
        self.aim.release()
        self.state_machine.restart()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.course_factory.destroy()

    def load_layout(self, layout: hole_layout) -> None:
        """Place tee, cup and a fresh ball for a freshly built hole."""
        self.layout = layout
        self.tee = layout.tee.copy()
        self.cup = layout.cup.copy()
        self.ball = self.world.spawn_ball(layout.tee)

    def tick(self, dt: float | None = None, now: float | None = None) -> None:
        """One display frame: drain relay events, step physics, run the hole checks."""
        if dt is None:
            dt = 1.0 / self.config.tick_rate_hz
        if now is None:
            now = self.clock()

        # Shots and contacts in this frame are stamped with the frame time
        self.state_machine.frame_time = now
        try:
            if self.client is not None:
                self.client.dispatch_pending_events()
            self.world.step(dt)
            self.state_machine.tick(now)
        finally:
            self.state_machine.frame_time = None

    # Aim

    def snap_aim_to_hole(self) -> float:
        """Point the streamed aim from the ball at the cup.

        Returns:
            The target heading in degrees.
        """
        origin = self.ball.position if self.ball is not None else self.tee
        target = math.degrees(math.atan2(self.cup.x - origin.x, self.cup.z - origin.z))
        self.aim.request_snap_to_target(target)
        return target

    # Relay events

    def handle_orientation(self, payload: Any) -> vector3 | None:
        try:
            wire.validate_vector_payload(wire.ORIENTATION, payload)
        except InvalidPayload as e:
            logger.warning(str(e))
            return None
        return self.aim.on_heading_sample(wire.vector_from_wire(payload))

    def handle_aim_start(self, payload: Any = None) -> None:
        self.aim.start_aiming()

    def handle_swing_data(self, payload: Any) -> applied_impulse | None:
        try:
            wire.validate_swing_payload(payload)
        except InvalidPayload as e:
            logger.warning(str(e))
            return None

        if self.aim.phase is AimPhase.IDLE:
            self.aim.start_aiming()
        locked_angle = self.aim.stop_aiming()

        power = min(max(float(payload["power"]), 0.0), MAX_POWER)
        shot = shot_descriptor(
            final_angle=locked_angle + float(payload["deviation"]), power=power
        )
        try:
            return self.take_shot(shot)
        finally:
            self.aim.release()

    def handle_throw(self, payload: Any) -> applied_impulse | None:
        try:
            wire.validate_vector_payload(wire.THROW, payload)
        except InvalidPayload as e:
            logger.warning(str(e))
            return None
        return self.take_shot(wire.vector_from_wire(payload))

    def take_shot(self, shot: shot_descriptor | vector3) -> applied_impulse | None:
        """Apply a shot and count the stroke; rejected shots only produce a message."""
        try:
            impulse = self.shots.apply(shot, self)
        except ShotRejected as e:
            logger.info(f"Shot rejected: {e}")
            self.on_message.invoke(str(e))
            return None

        strokes = self.state_machine.record_shot()
        logger.info(f"Stroke {strokes} on hole {self.hole.current_course_index + 1}")
        self.on_shot.invoke(impulse)
        return impulse

    # State machine notifications

    def _send_hole_complete(self, result, total_score: int, score_name: str) -> None:
        self.on_message.invoke(f"Hole complete! {score_name}")
        if self.client is not None:
            self.client.send_hole_complete(
                wire.hole_complete_to_wire(result, total_score, score_name)
            )

    def _send_game_complete(self, total_score: int, total_par: int, results) -> None:
        diff = total_score - total_par
        self.on_message.invoke(f"Game complete! Final score: {diff:+d}")
        if self.client is not None:
            self.client.send_game_complete(
                wire.game_complete_to_wire(total_score, total_par, results)
            )

    def _announce_penalty(self, stroke_count: int) -> None:
        self.on_message.invoke("Out of bounds! +1 stroke penalty")

    def _announce_ready(self) -> None:
        self.on_message.invoke("Ready for next shot")
