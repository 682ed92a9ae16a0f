"""
Physics boundary for the display session.

The game logic only needs a handful of capabilities from a rigid-body engine,
described by the BallBody and PhysicsWorld protocols below. SimpleBallWorld is
a small damped point-mass implementation used for headless play and tests; it
rolls a ball on a flat rectangular green with walls and a cup, nothing more.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from .types import vector3

logger = logging.getLogger(__name__)

# observer(body_a, body_b) fired when two bodies touch
ContactObserver = Callable[[Any, Any], None]


@runtime_checkable
class BallBody(Protocol):
    position: vector3
    velocity: vector3
    angular_velocity: vector3

    def apply_impulse(self, impulse: vector3, point: vector3) -> None: ...

    def apply_force(self, force: vector3, point: vector3) -> None: ...


class PhysicsWorld(Protocol):
    def step(self, dt: float) -> None: ...

    def spawn_ball(self, position: vector3) -> BallBody: ...

    def add_contact_observer(self, observer: ContactObserver) -> Callable[[], None]:
        """Register a contact observer. Returns an unsubscribe function."""
        ...


def wake_body(body: Any) -> None:
    """Wake a sleeping body when the engine supports sleep states."""
    wake_up = getattr(body, "wake_up", None)
    if callable(wake_up):
        wake_up()


class PointMassBall:
    """Ball body of SimpleBallWorld."""

    def __init__(self, position: vector3, mass: float = 0.15, radius: float = 0.08):
        self.position = position.copy()
        self.velocity = vector3()
        self.angular_velocity = vector3()
        self.mass = mass
        self.radius = radius
        self.sleeping = False
        self._force = vector3()

    def wake_up(self) -> None:
        self.sleeping = False

    def apply_impulse(self, impulse: vector3, point: vector3) -> None:
        self.velocity.x += impulse.x / self.mass
        self.velocity.y += impulse.y / self.mass
        self.velocity.z += impulse.z / self.mass
        self.sleeping = False

    def apply_force(self, force: vector3, point: vector3) -> None:
        self._force.x += force.x
        self._force.y += force.y
        self._force.z += force.z

    def take_force(self) -> vector3:
        force, self._force = self._force, vector3()
        return force


class CupSensor:
    """Trigger volume over the cup; reported to contact observers."""

    def __init__(self, center: vector3, radius: float, depth: float = 0.1):
        self.center = center.copy()
        self.radius = radius
        self.depth = depth


class SimpleBallWorld:
    """Damped point-mass ball on a flat walled green.

    Walls bounce the ball back inside the course. A ball that is over the cup
    and slow enough drops below the green; any overlap with the cup reports a
    contact between the ball and the cup sensor.
    """

    GRAVITY = -9.82
    LINEAR_DAMPING = 0.2  # fraction of velocity lost per second
    ROLLING_DECELERATION = 1.2  # m/s^2 while on the green
    WALL_RESTITUTION = 0.5
    SLEEP_SPEED = 0.02
    DROP_SPEED = 1.0  # slower than this over the cup and the ball falls in

    def __init__(self, width: float = 8.0, length: float = 16.0):
        self.half_width = width / 2.0
        self.half_length = length / 2.0
        self.ball: PointMassBall | None = None
        self.cup: CupSensor | None = None
        self._observers: list[ContactObserver] = []

    def reset_course(
        self, width: float, length: float, cup: vector3, cup_radius: float
    ) -> None:
        """Replace the green and cup; the ball is removed until spawn_ball()."""
        self.half_width = width / 2.0
        self.half_length = length / 2.0
        self.cup = CupSensor(cup, cup_radius)
        self.ball = None

    def spawn_ball(self, position: vector3) -> PointMassBall:
        self.ball = PointMassBall(position)
        return self.ball

    def add_contact_observer(self, observer: ContactObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def step(self, dt: float) -> None:
        ball = self.ball
        if ball is None or dt <= 0:
            return

        force = ball.take_force()
        if ball.sleeping and force.length() == 0.0:
            return

        v = ball.velocity
        v.x += force.x / ball.mass * dt
        v.y += (force.y / ball.mass + self.GRAVITY) * dt
        v.z += force.z / ball.mass * dt

        damping = (1.0 - self.LINEAR_DAMPING) ** dt
        v.x *= damping
        v.y *= damping
        v.z *= damping

        p = ball.position
        over_cup = self._over_cup(p)
        on_green = p.y <= ball.radius + 1e-6 and not over_cup

        if on_green:
            speed = math.hypot(v.x, v.z)
            if speed > 0:
                slowed = max(speed - self.ROLLING_DECELERATION * dt, 0.0)
                v.x *= slowed / speed
                v.z *= slowed / speed

        p.x += v.x * dt
        p.y += v.y * dt
        p.z += v.z * dt

        # Ground contact unless the ball is dropping into the cup
        if not over_cup or math.hypot(v.x, v.z) >= self.DROP_SPEED:
            if p.y < ball.radius and p.y > -ball.radius:
                p.y = ball.radius
                v.y = 0.0

        # Cup bottom
        if self.cup is not None and self._over_cup(p):
            floor = ball.radius - self.cup.depth
            if p.y < floor:
                p.y = floor
                v.x = v.y = v.z = 0.0

        self._bounce_walls(ball)

        if self.cup is not None and self._over_cup(p):
            for observer in self._observers[:]:
                observer(ball, self.cup)

        if on_green and v.length() < self.SLEEP_SPEED:
            v.x = v.y = v.z = 0.0
            ball.sleeping = True

    def _over_cup(self, p: vector3) -> bool:
        if self.cup is None:
            return False
        return (
            math.hypot(p.x - self.cup.center.x, p.z - self.cup.center.z)
            < self.cup.radius
        )

    def _bounce_walls(self, ball: PointMassBall) -> None:
        p, v = ball.position, ball.velocity
        if abs(p.x) > self.half_width:
            p.x = math.copysign(self.half_width, p.x)
            v.x = -v.x * self.WALL_RESTITUTION
        if abs(p.z) > self.half_length:
            p.z = math.copysign(self.half_length, p.z)
            v.z = -v.z * self.WALL_RESTITUTION
