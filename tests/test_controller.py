"""Tests for the controller-side session."""

import pytest

from putt_party import wire
from putt_party.config import ControllerConfig
from putt_party.controller import ControllerSession
from putt_party.types import orientation_reading


def reading(t: float, alpha: float = 0.0, beta: float = 45.0, **kwargs) -> orientation_reading:
    return orientation_reading(alpha=alpha, beta=beta, gamma=0.0, timestamp=t, **kwargs)


@pytest.fixture
def controller(fake_client):
    return ControllerSession(fake_client)


class TestSetup:
    def test_requires_room(self, fake_client):
        fake_client.room_id = None
        with pytest.raises(ValueError):
            ControllerSession(fake_client)

    def test_config_applied(self, fake_client):
        session = ControllerSession(fake_client, ControllerConfig(swing_min_samples=3))
        assert session.analyzer.min_samples == 3


class TestAim:
    """Tests for the heading stream."""

    def test_begin_aim_calibrates_and_announces(self, controller, fake_client):
        controller.begin_aim(reading(0.0, compass_heading=120.0))
        assert controller.streamer.reference_angle == 120.0
        assert fake_client.events(wire.AIM_START) == [None]

    def test_stream_is_rate_limited(self, controller, fake_client):
        sent = [controller.stream_heading(reading(t)) for t in (0.0, 20.0, 49.0, 50.0)]
        assert [d is not None for d in sent] == [True, False, False, True]
        assert len(fake_client.events(wire.ORIENTATION)) == 2

    def test_stream_relative_to_calibration(self, controller, fake_client):
        controller.calibrate(reading(0.0, alpha=30.0))
        direction = controller.stream_heading(reading(0.0, alpha=120.0))
        # 90 degrees right of the reference at the neutral 45 degree tilt
        assert direction.x == pytest.approx(10.0)
        assert direction.z == pytest.approx(0.0, abs=1e-9)
        assert fake_client.events(wire.ORIENTATION)[0]["x"] == pytest.approx(10.0)


class TestPutt:
    """Tests for swing capture and release."""

    def test_release_sends_swing_data(self, controller, fake_client):
        controller.start_putt(reading(0.0, alpha=0.0, beta=0.0))
        for i in range(1, 4):
            controller.add_reading(reading(i * 100.0, alpha=i * 2.5, beta=i * 15.0))
        shot = controller.release_putt(reading(400.0, alpha=10.0, beta=60.0))

        assert shot.final_angle == pytest.approx(10.0)
        assert shot.power == pytest.approx(0.5)
        payload = fake_client.events(wire.SWING_DATA)[0]
        assert payload["deviation"] == pytest.approx(10.0)
        assert payload["power"] == pytest.approx(0.5)
        assert controller.last_shot == shot
        assert controller.is_swinging is False

    def test_short_swing_sends_nothing(self, controller, fake_client):
        controller.start_putt(reading(0.0))
        controller.add_reading(reading(100.0, beta=90.0))
        assert controller.release_putt() is None
        assert fake_client.events(wire.SWING_DATA) == []

    def test_release_without_swing(self, controller, fake_client):
        assert controller.release_putt() is None
        assert fake_client.sent == []

    def test_cancel(self, controller):
        controller.start_putt(reading(0.0))
        assert controller.is_swinging is True
        controller.cancel_putt()
        assert controller.is_swinging is False

    def test_throttled_readings_are_skipped(self, controller):
        controller.start_putt(reading(0.0))
        assert controller.add_reading(reading(10.0)) is False
        assert controller.add_reading(reading(60.0)) is True

    def test_test_throw(self, controller, fake_client):
        velocity = controller.send_test_throw(reading(0.0, alpha=0.0), power=15.0)
        assert velocity.z == pytest.approx(15.0)
        assert velocity.y == pytest.approx(1.5)
        payload = fake_client.events(wire.THROW)[0]
        assert payload["power"] == 15.0
