"""Tests for the headless simulator and its scripted player."""

from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

from putt_party import simulator, wire
from putt_party.config import GameConfig
from putt_party.controller import ControllerSession
from putt_party.session import GameSession


def link(sender, receiver) -> None:
    """Deliver every relayed event the sender emits to the receiver's queue."""
    record = sender.emit

    def emit(event, payload=None) -> bool:
        record(event, payload)
        if event in receiver._handlers:
            receiver.queue(event, payload)
        return True

    sender.emit = emit


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def table(fake_client, clock):
    """Display session and scripted player linked through fake clients."""
    display_client = fake_client
    controller_client = type(fake_client)()
    link(controller_client, display_client)

    display = GameSession(
        GameConfig(total_holes=2), client=display_client, seed=3, clock=clock
    )
    display.start()
    player = simulator.ScriptedPlayer(
        ControllerSession(controller_client),
        display,
        rng=random.Random(7),
        accuracy=0.0,
    )
    yield display, player, controller_client
    display.close()


def play(display, player, clock, seconds: float) -> None:
    dt = 1.0 / 60.0
    for _ in range(int(seconds * 60)):
        clock.now += dt * 1000.0
        display.tick(dt, clock.now)
        player.step(clock.now)


class TestScriptedPlayer:
    """Tests for the bot driving a controller session."""

    def test_first_step_starts_aiming(self, table, clock):
        display, player, controller_client = table
        player.step(0.0)

        assert player.phase == "aiming"
        assert controller_client.events(wire.AIM_START) == [None]
        assert len(controller_client.events(wire.ORIENTATION)) == 1
        assert display.aim.state.pending_snap is True

    def test_swing_reaches_display_as_stroke(self, table, clock):
        display, player, controller_client = table
        play(display, player, clock, 1.0)

        assert len(player.swings) == 1
        assert len(controller_client.events(wire.SWING_DATA)) == 1
        assert display.hole.stroke_count == 1
        assert display.hole.ball_in_motion is True

    def test_waits_for_ball_before_next_swing(self, table, clock):
        display, player, _ = table
        play(display, player, clock, 1.0)
        assert player.phase == "waiting"

        play(display, player, clock, 0.5)
        assert len(player.swings) == 1

    def test_target_power_within_cap(self, table):
        display, player, _ = table
        assert 0.0 <= player.target_power() <= 1.5

    def test_idle_after_game_complete(self, table, clock):
        display, player, controller_client = table
        display.hole.game_complete = True
        player.step(0.0)

        assert player.phase == "waiting"
        assert controller_client.sent == []


class TestMain:
    """Tests for the simulator command line."""

    def test_help_exits_cleanly(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["putt-party-simulator", "--help"])
        with pytest.raises(SystemExit) as exc_info:
            simulator.main()

        assert exc_info.value.code == 0
        assert "--embedded" in capsys.readouterr().out

    def test_missing_config_file_exits_2(self, monkeypatch, tmp_path: Path, capsys):
        monkeypatch.setattr(simulator, "configure_logging", lambda **kwargs: None)
        monkeypatch.setattr(
            sys,
            "argv",
            ["putt-party-simulator", "--config", str(tmp_path / "missing.toml")],
        )
        with pytest.raises(SystemExit) as exc_info:
            simulator.main()

        assert exc_info.value.code == 2
        assert "ERROR" in capsys.readouterr().err
