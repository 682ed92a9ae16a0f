"""
Relay client shared by the controller and the display.

Wraps one ZeroMQ DEALER connection to the relay. All socket I/O happens on a
background thread: outgoing events are queued by emit() and flushed there,
heartbeats are sent there, and incoming events are either dispatched
immediately (auto_dispatch) or queued until dispatch_pending_events() is
called from the owner's own loop.
"""

import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import Any

import zmq

from . import wire
from .events import EventHandler
from .types import vector3

logger = logging.getLogger(__name__)


class relay_client:
    """
    Relay connection for one device (controller or display) in one room.

    Design: fire-and-forget emits, event callbacks for everything received.
    """

    def __init__(
        self,
        server: str = "tcp://localhost",
        router_port: int = 5555,
        room: str | None = None,
        role: str = "display",
        heartbeat_interval: float = 5.0,
        auto_dispatch: bool = True,
        queue_max: int = 1000,
    ):
        """
        Initialize the relay client.

        Args:
            server: ZeroMQ base address (e.g., "tcp://localhost")
            router_port: Relay ROUTER port
            room: Room id to join once started
            role: "controller" or "display", used in logs only
            heartbeat_interval: Seconds between keep-alive frames
            auto_dispatch: If True, callbacks fire on the I/O thread
            queue_max: Max queued outgoing and incoming events
        """
        self._server = server
        self._router_port = router_port
        self._room = room.strip().lower() if room else None
        self._role = role
        self._heartbeat_interval = heartbeat_interval
        self._auto_dispatch = auto_dispatch

        # ZeroMQ context and socket
        self._context: zmq.Context | None = None
        self._dealer_socket: zmq.Socket | None = None

        # Threading
        self._running = False
        self._io_thread: threading.Thread | None = None
        self._lock = threading.RLock()

        self._joined_room: str | None = None

        self._outbox: Queue = Queue(maxsize=queue_max)
        self._inbox: Queue = Queue(maxsize=queue_max)

        # Event handlers
        self.on_room_joined = EventHandler("roomJoined")
        self.on_room_error = EventHandler("roomError")
        self.on_orientation = EventHandler("orientation")
        self.on_aim_start = EventHandler("aim_start")
        self.on_swing_data = EventHandler("swing_data")
        self.on_throw = EventHandler("throw")
        self.on_hole_complete = EventHandler("holeComplete")
        self.on_game_complete = EventHandler("gameComplete")

        self._handlers: dict[str, EventHandler] = {
            wire.ROOM_JOINED: self.on_room_joined,
            wire.ROOM_ERROR: self.on_room_error,
            wire.ORIENTATION: self.on_orientation,
            wire.AIM_START: self.on_aim_start,
            wire.SWING_DATA: self.on_swing_data,
            wire.THROW: self.on_throw,
            wire.HOLE_COMPLETE: self.on_hole_complete,
            wire.GAME_COMPLETE: self.on_game_complete,
        }

        # Statistics
        self._stats = {
            "messages_sent": 0,
            "messages_received": 0,
            "dropped_sends": 0,
            "dropped_receives": 0,
        }

    # Properties
    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def room_id(self) -> str | None:
        """Room requested by this client."""
        return self._room

    @property
    def joined_room(self) -> str | None:
        """Room confirmed by the relay (None until roomJoined arrives)."""
        return self._joined_room

    @property
    def role(self) -> str:
        return self._role

    @property
    def server_address(self) -> str:
        return self._server

    @property
    def router_port(self) -> int:
        return self._router_port

    def start(self) -> "relay_client":
        """Connect to the relay and join the configured room."""
        with self._lock:
            if self._running:
                return self

            try:
                self._context = zmq.Context()
                self._dealer_socket = self._context.socket(zmq.DEALER)
                self._dealer_socket.setsockopt(zmq.LINGER, 200)
                address = f"{self._server}:{self._router_port}"
                self._dealer_socket.connect(address)

                self._running = True
                self._io_thread = threading.Thread(
                    target=self._io_loop, name=f"RelayClient-{self._role}", daemon=True
                )
                self._io_thread.start()

                logger.info(f"Relay client started: {address}, role={self._role}")

            except Exception as e:
                self._running = False
                self._cleanup()
                raise Exception(f"Failed to start relay client: {e}") from e

        if self._room:
            self.join_room(self._room)
        return self

    def stop(self) -> None:
        """Say goodbye to the relay and release resources."""
        with self._lock:
            if not self._running:
                return

            self.emit(wire.DISCONNECT)
            self._running = False

            if self._io_thread and self._io_thread.is_alive():
                self._io_thread.join(timeout=1.0)

            self._cleanup()
            self._joined_room = None
            logger.info("Relay client stopped")

    def close(self) -> None:
        """Alias for stop()."""
        self.stop()

    def _cleanup(self) -> None:
        if self._dealer_socket:
            self._dealer_socket.close()
            self._dealer_socket = None
        if self._context:
            self._context.term()
            self._context = None

    # Sending

    def join_room(self, room_id: str) -> bool:
        """Ask the relay to attach this connection to room_id.

        Raises:
            ValueError: If room_id is empty; the client never operates without a room.
        """
        if not room_id or not room_id.strip():
            raise ValueError("A room id is required to join the relay")
        self._room = room_id.strip().lower()
        return self.emit(wire.JOIN_ROOM, self._room)

    def emit(self, event: str, payload: Any = None) -> bool:
        """Queue an event for sending. Returns False when it was dropped."""
        try:
            self._outbox.put_nowait((event, payload))
            return True
        except Full:
            self._stats["dropped_sends"] += 1
            logger.debug(f"Outbox full, dropping '{event}'")
            return False

    def send_orientation(self, direction: vector3) -> bool:
        return self.emit(wire.ORIENTATION, wire.vector_to_wire(direction))

    def send_aim_start(self) -> bool:
        return self.emit(wire.AIM_START)

    def send_swing_data(self, deviation: float, power: float) -> bool:
        return self.emit(wire.SWING_DATA, wire.swing_to_wire(deviation, power))

    def send_throw(self, velocity: vector3, power: float) -> bool:
        return self.emit(wire.THROW, wire.vector_to_wire(velocity, power))

    def send_hole_complete(self, payload: dict[str, Any]) -> bool:
        return self.emit(wire.HOLE_COMPLETE, payload)

    def send_game_complete(self, payload: dict[str, Any]) -> bool:
        return self.emit(wire.GAME_COMPLETE, payload)

    # I/O thread

    def _io_loop(self) -> None:
        poller = zmq.Poller()
        poller.register(self._dealer_socket, zmq.POLLIN)
        next_heartbeat = time.monotonic() + self._heartbeat_interval

        while self._running:
            try:
                self._flush_outbox()

                now = time.monotonic()
                if now >= next_heartbeat:
                    self._send(wire.HEARTBEAT, None)
                    next_heartbeat = now + self._heartbeat_interval

                socks = dict(poller.poll(20))
                if self._dealer_socket in socks:
                    while True:
                        try:
                            parts = self._dealer_socket.recv_multipart(zmq.NOBLOCK)
                        except zmq.Again:
                            break
                        self._process_message(parts)

            except zmq.ZMQError as e:
                if self._running:
                    logger.error(f"Error in relay client loop: {e}")

        # Deliver the goodbye queued by stop()
        try:
            self._flush_outbox()
        except zmq.ZMQError as e:
            logger.debug(f"Final flush failed: {e}")

    def _flush_outbox(self) -> None:
        while True:
            try:
                event, payload = self._outbox.get_nowait()
            except Empty:
                return
            self._send(event, payload)

    def _send(self, event: str, payload: Any) -> None:
        try:
            self._dealer_socket.send_multipart(
                wire.encode_frames(event, payload), flags=zmq.NOBLOCK
            )
            self._stats["messages_sent"] += 1
        except zmq.Again:
            self._stats["dropped_sends"] += 1
            logger.debug(f"Relay not reachable, dropping '{event}'")

    def _process_message(self, parts: list[bytes]) -> None:
        try:
            event, payload = wire.decode_frames(parts)
        except Exception as e:
            logger.error(f"Error decoding relay message: {e}")
            return

        self._stats["messages_received"] += 1

        if event == wire.ROOM_JOINED and isinstance(payload, dict):
            self._joined_room = payload.get("roomId")
            logger.info(f"Joined room {self._joined_room} as {self._role}")
        elif event == wire.ROOM_ERROR:
            self._joined_room = None
            logger.warning(f"Relay refused room {self._room}: {payload}")

        if event not in self._handlers:
            logger.debug(f"Ignoring unknown event '{event}'")
            return

        if self._auto_dispatch:
            self._handlers[event].invoke(payload)
        else:
            try:
                self._inbox.put_nowait((event, payload))
            except Full:
                # Drop oldest and add new
                try:
                    self._inbox.get_nowait()
                    self._inbox.put_nowait((event, payload))
                except (Empty, Full):
                    pass
                self._stats["dropped_receives"] += 1

    def dispatch_pending_events(self, max_items: int = 100) -> int:
        """Invoke callbacks for queued events on the calling thread.

        Returns:
            Number of events dispatched.
        """
        count = 0
        while count < max_items:
            try:
                event, payload = self._inbox.get_nowait()
            except Empty:
                break
            self._handlers[event].invoke(payload)
            count += 1
        return count

    def get_stats(self) -> dict[str, Any]:
        """Return client statistics."""
        return {
            **self._stats,
            "room": self._room,
            "joined_room": self._joined_room,
            "role": self._role,
        }
