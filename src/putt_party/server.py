# server.py
import sys

# ruff: noqa: E402, I001

# Python version check - must be at the very beginning
MIN_PY = (3, 11)
if sys.version_info < MIN_PY:
    sys.stderr.write(
        f"ERROR: Putt Party relay requires Python {MIN_PY[0]}.{MIN_PY[1]}+ "
        f"(current: {sys.version.split()[0]}).\n"
    )
    sys.exit(1)

import argparse
import threading
import time
import traceback
from dataclasses import replace as dataclass_replace
from functools import lru_cache
from pathlib import Path
from typing import Any

import zmq
from loguru import logger

from . import network_utils, wire
from .config import (
    ConfigurationError,
    DefaultConfigError,
    ServerConfig,
    create_config_from_args,
    load_default_config,
)
from .errors import InvalidPayload, RoomNotFound
from .http_api import create_app, run_uvicorn_in_thread
from .logging_utils import configure_logging
from .relay import SessionRelay


@lru_cache(maxsize=1)
def get_version() -> str:
    """
    Return the relay version.
    Priority:
      1) importlib.metadata for 'putt-party' (when installed)
      2) parse nearest pyproject.toml (when running from source)
      3) 'unknown'
    """
    import importlib.metadata as im
    import tomllib

    try:
        return im.version("putt-party")
    except im.PackageNotFoundError:
        for dist in im.packages_distributions().get("putt_party", []):
            try:
                return im.version(dist)
            except im.PackageNotFoundError:
                pass

    for parent in Path(__file__).resolve().parents:
        toml_path = parent / "pyproject.toml"
        if toml_path.exists():
            data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
            v = (data.get("project") or {}).get("version")
            if v:
                return v
            break

    return "unknown"


class RelayServer:
    """ZeroMQ transport for the session relay.

    One ROUTER socket carries every device connection. The receive thread owns
    the socket: it reads frames, feeds the relay and performs all sends. The
    periodic thread drops sockets that stopped sending (heartbeats included)
    and logs status. The HTTP surface runs in its own uvicorn thread.
    """

    def __init__(self, config: ServerConfig | None = None, **overrides: Any):
        if config is None:
            config = load_default_config()
        if overrides:
            config = dataclass_replace(config, **overrides)
        self.config = config

        self.router_port = config.router_port
        self.client_timeout = config.client_timeout
        self.cleanup_interval = config.cleanup_interval
        self.status_log_interval = config.status_log_interval
        self.main_loop_sleep = config.main_loop_sleep
        self.poll_timeout = config.poll_timeout

        self.context = zmq.Context()
        self.router: zmq.Socket | None = None

        domain = None
        if config.enable_http:
            domain = network_utils.resolve_public_domain(
                config.public_domain, config.http_port
            )
        elif config.public_domain:
            domain = config.public_domain
        self.relay = SessionRelay.from_config(config, self._send_to_socket, domain)

        # Socket id -> monotonic time of its last frame
        self.last_seen: dict[str, float] = {}
        self._seen_lock = threading.Lock()

        # Threading
        self.running = False
        self.receive_thread: threading.Thread | None = None
        self.periodic_thread: threading.Thread | None = None
        self.http_thread: threading.Thread | None = None
        self.http_server = None
        self._stats_lock = threading.Lock()

        # Statistics
        self.message_count = 0
        self.invalid_message_count = 0
        self.timed_out_clients = 0

    def _increment_stat(self, stat_name: str, amount: int = 1):
        """Thread-safe increment of statistics"""
        with self._stats_lock:
            setattr(self, stat_name, getattr(self, stat_name) + amount)

    def _send_to_socket(self, socket_id: str, event: str, payload: Any) -> None:
        """Deliver one event to one peer. Raises when the peer is unroutable."""
        if self.router is None:
            raise RuntimeError("ROUTER socket is not bound")
        identity = bytes.fromhex(socket_id)
        self.router.send_multipart(
            [identity, *wire.encode_frames(event, payload)], flags=zmq.NOBLOCK
        )

    def start(self):
        """Start the server"""
        logger.info(f"Starting relay on port {self.router_port} (ROUTER)")

        try:
            self.router = self.context.socket(zmq.ROUTER)
            # Unroutable peers raise instead of being silently dropped
            self.router.setsockopt(zmq.ROUTER_MANDATORY, 1)
            self.router.setsockopt(zmq.LINGER, 0)
            self.router.bind(f"tcp://*:{self.router_port}")
            logger.info(f"ROUTER socket bound to port {self.router_port}")

            self.running = True

            self.receive_thread = threading.Thread(
                target=self._receive_loop, name="ReceiveThread"
            )
            self.periodic_thread = threading.Thread(
                target=self._periodic_loop, name="PeriodicThread"
            )
            self.receive_thread.start()
            self.periodic_thread.start()

            if self.config.enable_http:
                app = create_app(self.relay, game_path=self.config.game_path)
                self.http_thread, self.http_server = run_uvicorn_in_thread(
                    app, host=self.config.http_host, port=self.config.http_port
                )
                logger.info(
                    f"HTTP surface listening on {self.config.http_host}:{self.config.http_port}"
                )

            logger.info("All threads started successfully")
            logger.info("Relay is ready and waiting for connections...")

        except zmq.error.ZMQError as e:
            if "Address already in use" in str(e):
                logger.error(
                    f"Error: Another relay instance is already running on port {self.router_port}"
                )
                logger.error("Please stop the existing relay before starting a new one.")
                logger.error(f"You can find the process using: lsof -i :{self.router_port}")
                if self.router:
                    self.router.close()
                    self.router = None
                self.context.term()
                raise SystemExit(1) from e
            else:
                logger.error(f"ZMQ Error: {e}")
                raise
        except Exception as e:
            logger.error(f"Failed to start relay: {e}")
            logger.error(traceback.format_exc())
            raise

    def stop(self):
        """Stop the server"""
        logger.info("Stopping relay...")
        self.running = False

        if self.http_server is not None:
            self.http_server.should_exit = True
        if self.http_thread:
            self.http_thread.join(timeout=5.0)
            logger.info("HTTP thread stopped")

        if self.receive_thread:
            self.receive_thread.join()
            logger.info("Receive thread stopped")
        if self.periodic_thread:
            self.periodic_thread.join()
            logger.info("Periodic thread stopped")

        if self.router:
            self.router.close()
            self.router = None
        if self.context:
            self.context.term()

        logger.info(
            f"Relay stopped. Total messages processed: {self.message_count}, "
            f"Events relayed: {self.relay.relayed_count}, "
            f"Dropped payloads: {self.relay.dropped_payloads}"
        )

    def _receive_loop(self):
        """Receive frames from devices"""
        logger.info("Receive loop started")

        while self.running:
            try:
                if self.router.poll(self.poll_timeout, zmq.POLLIN):
                    parts = self.router.recv_multipart()
                    self._increment_stat("message_count")
                    self._handle_frames(parts)
            except Exception as e:
                logger.error(f"Error in receive loop: {e}")
                logger.error(traceback.format_exc())

        logger.info("Receive loop ended")

    def _handle_frames(self, parts: list[bytes]) -> None:
        """Dispatch one [identity, event, payload] message."""
        if len(parts) < 2:
            logger.warning(f"Received incomplete message with only {len(parts)} parts")
            self._increment_stat("invalid_message_count")
            return

        socket_id = parts[0].hex()
        self._touch(socket_id)

        try:
            event, payload = wire.decode_frames(parts[1:])
        except InvalidPayload as e:
            self._increment_stat("invalid_message_count")
            logger.error(f"Dropped message from {socket_id}: {e}")
            return

        if event == wire.HEARTBEAT:
            return
        if event == wire.JOIN_ROOM:
            self._handle_join(socket_id, payload)
        elif event == wire.DISCONNECT:
            self._disconnect(socket_id, "client disconnect")
        elif event in wire.RELAYED_EVENTS:
            self.relay.relay(event, payload, socket_id)
        else:
            self._increment_stat("invalid_message_count")
            logger.warning(f"Unknown event '{event}' from {socket_id}")

    def _handle_join(self, socket_id: str, payload: Any) -> None:
        try:
            room_id = wire.parse_room_id(payload)
        except InvalidPayload as e:
            logger.error(f"Rejected join from {socket_id}: {e}")
            self._reply_error(socket_id, "Room id is required")
            return
        try:
            self.relay.join_room(socket_id, room_id)
        except RoomNotFound:
            # roomError already sent to the caller
            pass

    def _reply_error(self, socket_id: str, message: str) -> None:
        try:
            self._send_to_socket(socket_id, wire.ROOM_ERROR, {"message": message})
        except zmq.ZMQError as e:
            logger.warning(f"Could not send roomError to {socket_id}: {e}")

    def _touch(self, socket_id: str) -> None:
        with self._seen_lock:
            self.last_seen[socket_id] = time.monotonic()

    def _disconnect(self, socket_id: str, reason: str) -> None:
        with self._seen_lock:
            self.last_seen.pop(socket_id, None)
        room_id = self.relay.leave(socket_id)
        if room_id is not None:
            logger.info(f"Socket {socket_id} disconnected from {room_id} ({reason})")

    def _periodic_loop(self):
        """Connection reaping and status logging"""
        logger.info("Periodic loop started")
        last_cleanup = 0.0
        last_log = time.monotonic()

        while self.running:
            try:
                current_time = time.monotonic()

                if current_time - last_cleanup >= self.cleanup_interval:
                    self._cleanup_clients(current_time)
                    last_cleanup = current_time

                if current_time - last_log >= self.status_log_interval:
                    with self._seen_lock:
                        connected = len(self.last_seen)
                    logger.info(
                        f"Status: {self.relay.room_count()} rooms, {connected} sockets, "
                        f"{self.message_count} messages, "
                        f"{self.relay.relayed_count} relayed, "
                        f"{self.relay.failed_sends} failed sends"
                    )
                    last_log = current_time

                time.sleep(self.main_loop_sleep)

            except Exception as e:
                logger.error(f"Error in periodic loop: {e}")

        logger.info("Periodic loop ended")

    def _cleanup_clients(self, current_time: float) -> list[str]:
        """Drop sockets whose last frame is older than client_timeout."""
        with self._seen_lock:
            expired = [
                socket_id
                for socket_id, seen in self.last_seen.items()
                if current_time - seen > self.client_timeout
            ]
        for socket_id in expired:
            self._disconnect(socket_id, "timeout")
            self._increment_stat("timed_out_clients")
        return expired


def main():
    parser = argparse.ArgumentParser(description="Putt Party relay server")
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to a TOML config file"
    )
    parser.add_argument(
        "--router-port",
        type=int,
        default=None,
        help="Port for the ROUTER socket (default: 5555)",
    )
    parser.add_argument(
        "--http-port", type=int, default=None, help="Port for HTTP (default: 3000)"
    )
    parser.add_argument(
        "--http-host", default=None, help="Bind address for HTTP (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--public-domain",
        default=None,
        help="host[:port] sent to devices in roomJoined (default: first LAN address)",
    )
    parser.add_argument(
        "--max-rooms", type=int, default=None, help="Room capacity (default: 100)"
    )
    parser.add_argument("--no-http", action="store_true", help="Disable the HTTP surface")
    parser.add_argument(
        "--log-dir", type=Path, default=None, help="Directory for rotated JSON logs"
    )
    parser.add_argument(
        "--log-level-console",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level (default: INFO)",
    )
    parser.add_argument(
        "--log-json-console", action="store_true", help="Emit console logs as JSON"
    )
    parser.add_argument("--log-rotation", default=None, help="loguru rotation rule")
    parser.add_argument("--log-retention", default=None, help="loguru retention rule")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
        help="Show version and exit",
    )

    args = parser.parse_args()

    try:
        config, overrides = create_config_from_args(args)
    except (ConfigurationError, DefaultConfigError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    configure_logging(
        log_dir=Path(config.log_dir) if config.log_dir else None,
        console_level=config.log_level_console,
        console_json=config.log_json_console,
        rotation=config.log_rotation,
        retention=config.log_retention,
    )

    logger.info("=" * 80)
    logger.info("Putt Party Relay Starting")
    logger.info("=" * 80)
    logger.info(f"  Version: {get_version()}")
    logger.info(f"  ROUTER port: {config.router_port}")
    if config.enable_http:
        logger.info(f"  HTTP port: {config.http_port}")
        for ip in network_utils.get_local_ip_addresses():
            logger.info(
                f"  Create a room: {config.public_protocol}://{ip}:{config.http_port}/create-room"
            )
    else:
        logger.info("  HTTP: Disabled")
    logger.info(f"  Max rooms: {config.max_rooms}")
    for override in overrides:
        logger.info(
            f"  Config override: {override.key} = {override.new_value} "
            f"(default: {override.default_value})"
        )
    logger.info("=" * 80)

    server = RelayServer(config=config)

    try:
        server.start()

        logger.info("Relay started successfully. Press Ctrl+C to stop.")

        while True:
            try:
                time.sleep(1)
            except KeyboardInterrupt:
                logger.info("Received interrupt signal (Ctrl+C)...")
                break

    except SystemExit:
        logger.info("Relay startup failed. Exiting...")
        return
    except KeyboardInterrupt:
        logger.info("Received interrupt signal during startup...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.error(traceback.format_exc())
    finally:
        try:
            server.stop()
        except Exception as e:
            logger.error(f"Error during relay shutdown: {e}")
        logger.info("Relay shutdown complete.")
