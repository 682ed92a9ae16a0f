"""Tests for turning shots into ball impulses."""

import math
from types import SimpleNamespace

import pytest

from putt_party.aim import AimController
from putt_party.config import GameConfig
from putt_party.errors import ShotRejected
from putt_party.physics import PointMassBall
from putt_party.shot import ShotApplier, power_curve
from putt_party.types import hole_state, shot_descriptor, vector3


@pytest.fixture
def session():
    ball = PointMassBall(vector3(0.0, 0.08, -5.0))
    return SimpleNamespace(ball=ball, hole=hole_state(), aim=AimController())


@pytest.fixture
def applier():
    return ShotApplier.from_config(GameConfig())


class TestReadiness:
    """Tests for shot rejection."""

    def test_no_ball(self, applier, session):
        session.ball = None
        with pytest.raises(ShotRejected) as exc_info:
            applier.apply(shot_descriptor(0.0, 1.0), session)
        assert exc_info.value.reason == "no_ball"

    def test_ball_in_motion(self, applier, session):
        session.hole.ball_in_motion = True
        with pytest.raises(ShotRejected) as exc_info:
            applier.apply(shot_descriptor(0.0, 1.0), session)
        assert exc_info.value.reason == "ball_in_motion"
        assert session.ball.velocity == vector3()

    def test_course_completed(self, applier, session):
        session.hole.course_completed = True
        with pytest.raises(ShotRejected) as exc_info:
            applier.apply(vector3(0.0, 0.0, 10.0), session)
        assert exc_info.value.reason == "course_completed"

    def test_rejection_does_not_count_stroke(self, applier, session):
        session.hole.ball_in_motion = True
        with pytest.raises(ShotRejected):
            applier.apply(shot_descriptor(0.0, 1.0), session)
        assert session.hole.stroke_count == 0


class TestDescriptorShot:
    """Tests for the swing path."""

    def test_straight_full_power(self, applier, session):
        result = applier.apply(shot_descriptor(final_angle=0.0, power=1.0), session)
        assert result.force == pytest.approx(3.0)
        assert result.impulse.x == pytest.approx(0.0, abs=1e-9)
        assert result.impulse.y == pytest.approx(0.05)
        assert result.impulse.z == pytest.approx(3.0)

    def test_zero_power_is_min_force(self, applier, session):
        result = applier.apply(shot_descriptor(final_angle=90.0, power=0.0), session)
        assert result.force == pytest.approx(0.5)
        assert result.impulse.x == pytest.approx(0.5)

    def test_overswing_exceeds_max_force(self, applier, session):
        result = applier.apply(shot_descriptor(final_angle=0.0, power=1.5), session)
        assert result.force == pytest.approx(4.25)

    def test_ball_velocity_reset_before_impulse(self, applier, session):
        session.ball.velocity = vector3(5.0, 0.0, 5.0)
        session.ball.angular_velocity = vector3(1.0, 1.0, 1.0)
        session.ball.sleeping = True

        applier.apply(shot_descriptor(final_angle=0.0, power=1.0), session)

        assert session.ball.velocity.x == pytest.approx(0.0, abs=1e-9)
        assert session.ball.velocity.z == pytest.approx(3.0 / 0.15)
        assert session.ball.angular_velocity == vector3()
        assert session.ball.sleeping is False


class TestRawVectorShot:
    """Tests for the throw path."""

    def test_power_curve(self):
        assert power_curve(0.25) == pytest.approx(0.125)
        assert power_curve(0.5) == pytest.approx(0.5)
        assert power_curve(0.8) == pytest.approx(0.8)

    def test_full_magnitude_is_max_force(self, applier, session):
        result = applier.apply(vector3(0.0, 3.0, 30.0), session)
        assert result.force == pytest.approx(3.0)

    def test_light_throw_is_curved(self, applier, session):
        result = applier.apply(vector3(0.0, 0.0, 7.5), session)
        # normalized 0.25 -> curved 0.125
        assert result.force == pytest.approx(0.5 + 0.125 * 2.5)

    def test_aim_direction_overrides_throw_heading(self, applier, session):
        session.aim.last_direction = vector3(10.0, 1.0, 0.0)
        result = applier.apply(vector3(0.0, 0.0, 30.0), session)
        assert result.direction.x == pytest.approx(1.0)
        assert result.direction.z == pytest.approx(0.0)
        assert result.impulse.x == pytest.approx(3.0)

    def test_without_aim_uses_throw_heading(self, applier, session):
        result = applier.apply(vector3(3.0, 0.0, 4.0), session)
        assert math.degrees(math.atan2(result.direction.x, result.direction.z)) == (
            pytest.approx(math.degrees(math.atan2(3.0, 4.0)))
        )
