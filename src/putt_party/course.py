"""
Course layouts and the factory that builds them into the physics world.

Every hole shares the same rectangular green: the tee near one end, the cup
near the other, and a few obstacles off the center line whose count grows
with the hole index.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Protocol

from .types import hole_layout, obstacle_spec, vector3

logger = logging.getLogger(__name__)

OBSTACLE_KINDS = ("sand", "hill", "barrier")
MAX_OBSTACLES = 3


class CourseFactory(Protocol):
    def build(self, index: int) -> hole_layout:
        """Build hole `index` (zero-based) and return its layout."""
        ...

    def destroy(self) -> None:
        """Tear down whatever the last build() created."""
        ...


def obstacle_size(kind: str, rng: random.Random) -> float:
    if kind == "sand":
        return 0.6 + rng.random() * 0.4
    if kind == "hill":
        return 0.3 + rng.random() * 0.2
    return 0.8 + rng.random() * 0.6


def plan_obstacles(
    index: int, length: float, rng: random.Random
) -> list[obstacle_spec]:
    """Obstacles for hole `index`, kept clear of the tee-to-cup line."""
    obstacles = []
    for i in range(min(index + 1, MAX_OBSTACLES)):
        kind = OBSTACLE_KINDS[(i + index) % len(OBSTACLE_KINDS)]
        side = 1.0 if rng.random() > 0.5 else -1.0
        x = side * (1.5 + rng.random() * 2.0)
        z = -length / 4.0 + rng.random() * length / 2.0
        obstacles.append(
            obstacle_spec(kind=kind, x=x, z=z, size=obstacle_size(kind, rng))
        )
    return obstacles


def build_layout(index: int, config, rng: random.Random) -> hole_layout:
    """Layout of hole `index` from a GameConfig."""
    width = config.course_width
    length = config.course_length
    return hole_layout(
        index=index,
        par=config.par_for_hole(index),
        width=width,
        length=length,
        tee=vector3(0.0, config.tee_drop_height, -length / 2.0 + 3.0),
        cup=vector3(0.0, 0.0, length / 2.0 - 2.0),
        obstacles=plan_obstacles(index, length, rng),
    )


class LayoutCourseFactory:
    """CourseFactory producing seeded layouts.

    The optional builder receives each layout and turns it into engine
    objects; the optional destroyer is called before every rebuild.
    """

    def __init__(
        self,
        config,
        builder: Callable[[hole_layout], None] | None = None,
        destroyer: Callable[[], None] | None = None,
        seed: int | None = None,
    ):
        self.config = config
        self.builder = builder
        self.destroyer = destroyer
        self.seed = seed
        self.current: hole_layout | None = None

    def build(self, index: int) -> hole_layout:
        if self.current is not None:
            self.destroy()
        rng = random.Random(None if self.seed is None else self.seed + index)
        layout = build_layout(index, self.config, rng)
        if self.builder is not None:
            self.builder(layout)
        self.current = layout
        logger.info(
            f"Built hole {index + 1} (par {layout.par}, "
            f"{len(layout.obstacles)} obstacles)"
        )
        return layout

    def destroy(self) -> None:
        if self.destroyer is not None:
            self.destroyer()
        self.current = None


def world_builder(world, cup_radius: float) -> Callable[[hole_layout], None]:
    """Builder that resets a SimpleBallWorld to a layout's green and cup."""

    def build(layout: hole_layout) -> None:
        world.reset_course(layout.width, layout.length, layout.cup, cup_radius)

    return build
