#!/usr/bin/env python3
"""
Putt Party headless simulator - plays a full game without phones or a browser.

A display (GameSession on a SimpleBallWorld) and a controller
(ControllerSession driven by a scripted player) connect to a relay, join the
same room and play every hole. Useful for exercising the relay and the game
loop end to end.

Architecture:
    - Relay: an existing server (--server/--router-port) or one started in-process (--embedded)
    - Display: relay_client with queued events, drained on the tick loop
    - Controller: relay_client plus ControllerSession
    - ScriptedPlayer: aims at the cup and swings synthetic orientation samples
"""

from __future__ import annotations

import argparse
import logging
import math
import random
import sys
import time
from pathlib import Path

from .client import relay_client
from .config import (
    ConfigurationError,
    ControllerConfig,
    DefaultConfigError,
    GameConfig,
    load_session_configs,
)
from .controller import ControllerSession
from .hole import monotonic_ms
from .logging_utils import configure_logging
from .physics import SimpleBallWorld
from .session import GameSession
from .types import orientation_reading, shot_descriptor

logger = logging.getLogger(__name__)


# ============================================================================
# Scripted player
# ============================================================================


class ScriptedPlayer:
    """Controller-side bot that lines up every putt and swings it.

    One step() per display tick. Phases:
        waiting  - ball moving or hole finished; nothing to do
        aiming   - aim_start sent, streaming headings until the display snapped
        cooldown - swing sent, giving the display time to start the ball
    """

    SWING_SAMPLES = 8
    SAMPLE_SPACING_MS = 60.0
    AIM_SETTLE_MS = 300.0
    COOLDOWN_MS = 500.0

    def __init__(
        self,
        controller: ControllerSession,
        display: GameSession,
        rng: random.Random | None = None,
        accuracy: float = 4.0,
    ):
        """
        Args:
            controller: Controller session sending the swings
            display: Game session the swings land in (read for aiming only)
            rng: Random source for heading and swing noise
            accuracy: Standard deviation of the swing deviation, degrees
        """
        self.controller = controller
        self.display = display
        self.rng = rng or random.Random()
        self.accuracy = accuracy

        self.phase = "waiting"
        self._next_at = 0.0
        self._heading = 0.0
        self.swings: list[shot_descriptor] = []

    def step(self, now_ms: float) -> None:
        hole = self.display.hole
        if hole.game_complete:
            return

        if self.phase == "waiting":
            ball = self.display.ball
            if ball is None or hole.ball_in_motion or hole.course_completed:
                return
            self._begin_aim(now_ms)

        elif self.phase == "aiming" and now_ms >= self._next_at:
            if self.display.aim.state.pending_snap:
                # Snap not applied yet; keep streaming
                self.controller.stream_heading(self._reading(now_ms), now_ms)
                self._next_at = now_ms + self.controller.streamer.interval_ms
                return
            self._swing(now_ms)

        elif self.phase == "cooldown" and now_ms >= self._next_at:
            self.phase = "waiting"

    def _reading(self, now_ms: float, alpha_offset: float = 0.0, beta: float = 45.0):
        return orientation_reading(
            alpha=self._heading + alpha_offset, beta=beta, gamma=0.0, timestamp=now_ms
        )

    def _begin_aim(self, now_ms: float) -> None:
        self._heading = self.rng.uniform(0.0, 360.0)
        self.display.snap_aim_to_hole()
        self.controller.begin_aim()
        self.controller.stream_heading(self._reading(now_ms), now_ms)
        self.phase = "aiming"
        self._next_at = now_ms + self.AIM_SETTLE_MS

    def target_power(self) -> float:
        """Swing power that should roll the ball about to the cup."""
        config = self.display.config
        ball = self.display.ball
        cup = self.display.cup
        distance = math.hypot(cup.x - ball.position.x, cup.z - ball.position.z)

        # v^2 = 2 a d on the green, padded for air drag
        speed = math.sqrt(2.0 * SimpleBallWorld.ROLLING_DECELERATION * distance) * 1.15
        force = speed * getattr(ball, "mass", 0.15)
        span = config.putt_max_force - config.putt_min_force
        power = (force - config.putt_min_force) / span if span > 0 else 0.0
        power *= self.rng.uniform(0.9, 1.1)
        return min(max(power, 0.0), 1.5)

    def _swing(self, now_ms: float) -> None:
        """Feed a synthetic swing whose peak speed encodes the target power."""
        solid_hit = self.controller.analyzer.solid_hit_speed
        step_s = self.SAMPLE_SPACING_MS / 1000.0
        beta_step = self.target_power() * solid_hit * step_s
        deviation = self.rng.gauss(0.0, self.accuracy)

        count = self.SWING_SAMPLES
        start = now_ms
        readings = [
            self._reading(
                start + i * self.SAMPLE_SPACING_MS,
                alpha_offset=deviation * i / (count - 1),
                beta=45.0 + beta_step * i,
            )
            for i in range(count)
        ]

        self.controller.start_putt(readings[0])
        for reading in readings[1:-1]:
            self.controller.add_reading(reading)
        shot = self.controller.release_putt(readings[-1])
        if shot is not None:
            self.swings.append(shot)

        self.phase = "cooldown"
        self._next_at = now_ms + self.COOLDOWN_MS


# ============================================================================
# Orchestration
# ============================================================================


class GameSimulator:
    """Runs a display, a controller and optionally the relay in one process."""

    def __init__(
        self,
        server_addr: str,
        router_port: int,
        room_id: str | None,
        game_config: GameConfig,
        controller_config: ControllerConfig,
        embedded: bool = False,
        seed: int | None = None,
        timeout: float = 600.0,
    ):
        self.server_addr = server_addr
        self.router_port = router_port
        self.room_id = room_id
        self.game_config = game_config
        self.controller_config = controller_config
        self.embedded = embedded
        self.seed = seed
        self.timeout = timeout

        self.relay_server = None
        self.display_client: relay_client | None = None
        self.controller_client: relay_client | None = None
        self.display: GameSession | None = None
        self.player: ScriptedPlayer | None = None
        self.result: dict | None = None

    def _start_relay(self) -> None:
        from .server import RelayServer

        self.relay_server = RelayServer(router_port=self.router_port, enable_http=False)
        self.relay_server.start()
        self.server_addr = "tcp://localhost"
        if not self.room_id:
            self.room_id = self.relay_server.relay.create_room()
        logger.info(f"Embedded relay on port {self.router_port}, room {self.room_id}")

    def _wait_joined(self, client: relay_client, deadline: float) -> None:
        while client.joined_room is None:
            if not client.is_running or time.monotonic() > deadline:
                raise TimeoutError(f"{client.role} could not join room {self.room_id}")
            client.dispatch_pending_events()
            time.sleep(0.02)

    def setup(self) -> None:
        if self.embedded:
            self._start_relay()
        if not self.room_id:
            raise ValueError("A room id is required (use --room or --embedded)")

        self.display_client = relay_client(
            server=self.server_addr,
            router_port=self.router_port,
            room=self.room_id,
            role="display",
            auto_dispatch=False,
        )
        self.controller_client = relay_client(
            server=self.server_addr,
            router_port=self.router_port,
            room=self.room_id,
            role="controller",
            heartbeat_interval=self.controller_config.heartbeat_interval,
        )

        self.display = GameSession(
            self.game_config, client=self.display_client, seed=self.seed
        )
        self.display.on_message.add_listener(lambda text: logger.info(f"[display] {text}"))
        self.display.state_machine.on_game_complete.add_listener(self._on_game_complete)

        controller = ControllerSession(self.controller_client, self.controller_config)
        self.player = ScriptedPlayer(
            controller,
            self.display,
            rng=random.Random(self.seed),
        )

        self.display_client.start()
        self.controller_client.start()

        deadline = time.monotonic() + 5.0
        self._wait_joined(self.display_client, deadline)
        self._wait_joined(self.controller_client, deadline)

    def _on_game_complete(self, total_score: int, total_par: int, results) -> None:
        self.result = {
            "totalScore": total_score,
            "totalPar": total_par,
            "scoreVsPar": total_score - total_par,
            "holes": [(r.hole_number, r.strokes, r.par) for r in results],
        }

    def run(self) -> dict | None:
        """Play until the game completes or the timeout expires."""
        self.setup()
        self.display.start()

        dt = 1.0 / self.game_config.tick_rate_hz
        deadline = time.monotonic() + self.timeout
        try:
            while self.result is None and time.monotonic() < deadline:
                now = monotonic_ms()
                self.display.tick(dt, now)
                self.player.step(now)
                time.sleep(dt)
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.stop()

        if self.result is None:
            logger.warning("Game did not finish before the timeout")
        return self.result

    def stop(self) -> None:
        if self.display is not None:
            self.display.close()
        for client in (self.controller_client, self.display_client):
            if client is not None:
                try:
                    client.stop()
                except Exception as e:
                    logger.error(f"Error stopping {client.role} client: {e}")
        if self.relay_server is not None:
            self.relay_server.stop()
            self.relay_server = None


# ============================================================================
# CLI Entry Point
# ============================================================================


def main():
    """Main entry point for the game simulator."""
    parser = argparse.ArgumentParser(
        description="Putt Party simulator - plays a full game headlessly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --embedded
  %(prog)s --server tcp://192.168.1.100 --room 3fa2c9d1
  %(prog)s --embedded --seed 7 --log-level DEBUG
        """,
    )
    parser.add_argument(
        "--server",
        type=str,
        default="tcp://localhost",
        help="Relay address (default: tcp://localhost)",
    )
    parser.add_argument(
        "--router-port", type=int, default=5555, help="Relay ROUTER port (default: 5555)"
    )
    parser.add_argument("--room", type=str, default=None, help="Room id to join")
    parser.add_argument(
        "--embedded",
        action="store_true",
        help="Start a relay in this process and create a room on it",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="TOML file with [game]/[controller] tuning"
    )
    parser.add_argument("--seed", type=int, default=None, help="Course and player seed")
    parser.add_argument(
        "--timeout", type=float, default=600.0, help="Give up after N seconds (default: 600)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    configure_logging(log_dir=None, console_level=args.log_level)

    try:
        game_config, controller_config = load_session_configs(args.config)
    except (ConfigurationError, DefaultConfigError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)

    logger.info("=" * 60)
    logger.info("Putt Party Simulator")
    logger.info("=" * 60)

    simulator = GameSimulator(
        server_addr=args.server,
        router_port=args.router_port,
        room_id=args.room,
        game_config=game_config,
        controller_config=controller_config,
        embedded=args.embedded,
        seed=args.seed,
        timeout=args.timeout,
    )

    try:
        result = simulator.run()
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)

    if result is None:
        sys.exit(1)
    for hole, strokes, par in result["holes"]:
        logger.info(f"  Hole {hole}: {strokes} (par {par})")
    logger.info(
        f"Final score: {result['scoreVsPar']:+d} "
        f"({result['totalScore']} strokes, par {result['totalPar']})"
    )


if __name__ == "__main__":
    main()
