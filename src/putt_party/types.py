"""
Data types shared by the Putt Party relay, controller and display sessions.

All types use snake_case naming conventions for Python compatibility.
Angles are degrees and timestamps are monotonic milliseconds unless noted.
"""

import math
from dataclasses import dataclass, field


@dataclass
class vector3:
    """3D vector in course space (y up, z toward the cup)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def horizontal_length(self) -> float:
        return math.hypot(self.x, self.z)

    def copy(self) -> "vector3":
        return vector3(self.x, self.y, self.z)


@dataclass
class orientation_sample:
    """One buffered orientation event of a swing."""

    alpha: float
    beta: float
    gamma: float
    timestamp: float


@dataclass
class orientation_reading:
    """Raw controller sensor event before heading resolution.

    Any of the heading sources may be missing depending on the device.
    """

    alpha: float | None = None
    beta: float = 0.0
    gamma: float = 0.0
    compass_heading: float | None = None
    absolute_alpha: float | None = None
    timestamp: float = 0.0

    def to_sample(self) -> orientation_sample:
        return orientation_sample(
            alpha=self.alpha if self.alpha is not None else 0.0,
            beta=self.beta,
            gamma=self.gamma,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class shot_descriptor:
    """Result of a swing: where the ball goes and how hard."""

    final_angle: float
    power: float


@dataclass
class aim_state:
    """Aim lock and snap-to-target state of one game session."""

    locked_angle: float = 0.0
    pending_snap: bool = False
    target_snap_angle: float = 0.0
    aim_offset: float = 0.0


@dataclass
class hole_state:
    """Per-hole progress of one game session."""

    stroke_count: int = 0
    par: int = 2
    ball_in_motion: bool = False
    course_completed: bool = False
    current_course_index: int = 0
    last_shot_time: float = 0.0
    total_score: int = 0
    advance_at: float | None = None  # ms deadline for the next hole
    game_complete: bool = False


@dataclass
class room_data:
    """Directory entry for one relay room."""

    room_id: str
    created_at: float  # wall-clock seconds
    connected_count: int = 0
    game_type: str = "minigolf"


@dataclass
class hole_result:
    """Strokes taken on one completed hole."""

    hole_number: int
    strokes: int
    par: int

    @property
    def score_vs_par(self) -> int:
        return self.strokes - self.par


@dataclass
class obstacle_spec:
    """Placement of one obstacle on a hole."""

    kind: str  # "sand", "hill" or "barrier"
    x: float
    z: float
    size: float


@dataclass
class hole_layout:
    """Geometry handed to the course builder for one hole."""

    index: int
    par: int
    width: float
    length: float
    tee: vector3
    cup: vector3
    obstacles: list[obstacle_spec] = field(default_factory=list)


@dataclass
class applied_impulse:
    """Impulse handed to the physics engine for an accepted shot."""

    impulse: vector3
    force: float
    direction: vector3
