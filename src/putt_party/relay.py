"""
Session relay: room directory and event multiplexer.

The relay knows nothing about golf. It maps room ids to the sockets joined to
them and forwards allow-listed events between the members of a room. Sockets
are opaque string ids; delivery goes through the send callback the transport
provides, so the same relay runs behind ZeroMQ or in tests.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from . import wire
from .errors import InvalidPayload, RoomCapacityExceeded, RoomNotFound
from .types import room_data

logger = logging.getLogger(__name__)

# send(socket_id, event, payload); may raise when the peer is gone
SendCallback = Callable[[str, str, Any], None]


class SessionRelay:
    """Room directory plus per-room event fan-out.

    Thread-safe: the receive loop, the connection reaper and the HTTP
    handlers all call into the same instance.
    """

    def __init__(
        self,
        send: SendCallback,
        max_rooms: int = 100,
        room_expiry_hours: float = 2.0,
        game_type: str = "minigolf",
        domain: str | None = None,
        protocol: str = "http",
        clock: Callable[[], float] = time.time,
    ):
        self._send = send
        self.max_rooms = max_rooms
        self.room_expiry_seconds = room_expiry_hours * 3600.0
        self.game_type = game_type
        self.domain = domain
        self.protocol = protocol
        self._clock = clock
        self._started_at = time.monotonic()

        self._rooms: dict[str, room_data] = {}
        self._members: dict[str, set[str]] = {}  # room_id -> socket ids
        self._socket_rooms: dict[str, str] = {}  # socket id -> room_id
        self._lock = threading.RLock()

        # Statistics
        self.relayed_count = 0
        self.dropped_payloads = 0
        self.failed_sends = 0

    @classmethod
    def from_config(cls, config, send: SendCallback, domain: str | None = None):
        """Build from a ServerConfig."""
        return cls(
            send,
            max_rooms=config.max_rooms,
            room_expiry_hours=config.room_expiry_hours,
            game_type=config.game_type,
            domain=domain,
            protocol=config.public_protocol,
        )

    # Room directory

    def create_room(self) -> str:
        """Allocate a new room and return its 8-character id.

        Raises:
            RoomCapacityExceeded: If the directory is full even after evicting
                expired rooms.
        """
        with self._lock:
            if len(self._rooms) >= self.max_rooms:
                self.cleanup_expired()
            if len(self._rooms) >= self.max_rooms:
                raise RoomCapacityExceeded(self.max_rooms)

            room_id = uuid.uuid4().hex[:8]
            self._rooms[room_id] = room_data(
                room_id=room_id, created_at=self._clock(), game_type=self.game_type
            )
            self._members[room_id] = set()

        logger.info(f"Room created: {room_id}")
        return room_id

    def get_room(self, room_id: str) -> room_data | None:
        """Snapshot of a room entry, None if unknown."""
        with self._lock:
            room = self._rooms.get(room_id)
            return replace(room) if room else None

    def list_rooms(self) -> list[str]:
        """Evict expired rooms, then return the live room ids."""
        with self._lock:
            self.cleanup_expired()
            return list(self._rooms)

    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    def cleanup_expired(self, now: float | None = None) -> list[str]:
        """Remove rooms that are empty and older than the expiry window."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [
                room_id
                for room_id, room in self._rooms.items()
                if room.connected_count == 0
                and now - room.created_at > self.room_expiry_seconds
            ]
            for room_id in expired:
                del self._rooms[room_id]
                self._members.pop(room_id, None)
                logger.info(f"Removed expired room: {room_id}")
        return expired

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "activeRooms": self.room_count(),
            "uptime": time.monotonic() - self._started_at,
        }

    # Membership

    def room_of(self, socket_id: str) -> str | None:
        with self._lock:
            return self._socket_rooms.get(socket_id)

    def members(self, room_id: str) -> set[str]:
        with self._lock:
            return set(self._members.get(room_id, ()))

    def join_room(self, socket_id: str, room_id: str) -> room_data:
        """Attach a socket to a room, leaving its previous room first.

        Raises:
            RoomNotFound: If the room does not exist. The caller has already
                been sent a roomError event.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                found = False
            else:
                found = True
                self._detach(socket_id)
                self._members[room_id].add(socket_id)
                self._socket_rooms[socket_id] = room_id
                room.connected_count += 1
                snapshot = replace(room)

        if not found:
            logger.warning(f"Socket {socket_id} tried to join unknown room {room_id}")
            self._deliver(socket_id, wire.ROOM_ERROR, {"message": RoomNotFound.message})
            raise RoomNotFound(room_id)

        logger.info(
            f"Socket {socket_id} joined room {room_id} "
            f"({snapshot.connected_count} connected)"
        )
        reply = {"roomId": room_id, "gameType": snapshot.game_type}
        if self.domain:
            reply["domain"] = self.domain
            reply["protocol"] = self.protocol
        self._deliver(socket_id, wire.ROOM_JOINED, reply)
        return snapshot

    def leave(self, socket_id: str) -> str | None:
        """Detach a socket from its room. Safe to call more than once.

        Returns:
            The room the socket left, None if it was not in one.
        """
        with self._lock:
            room_id = self._detach(socket_id)
        if room_id is not None:
            logger.info(f"Socket {socket_id} left room {room_id}")
        return room_id

    def _detach(self, socket_id: str) -> str | None:
        # Caller holds the lock
        room_id = self._socket_rooms.pop(socket_id, None)
        if room_id is None:
            return None
        self._members.get(room_id, set()).discard(socket_id)
        room = self._rooms.get(room_id)
        if room is not None:
            assert room.connected_count > 0, f"connected_count underflow in {room_id}"
            room.connected_count = max(room.connected_count - 1, 0)
        return room_id

    # Event fan-out

    def relay(self, event: str, payload: Any, from_socket: str) -> int:
        """Forward an allow-listed event to the sender's room.

        throw goes to every member including the sender; all other events skip
        the sender. Invalid payloads are logged and dropped.

        Returns:
            Number of sockets the event was delivered to.
        """
        if event not in wire.RELAYED_EVENTS:
            logger.warning(f"Refusing to relay unknown event '{event}'")
            return 0

        try:
            payload = wire.validate_relay_payload(event, payload)
        except InvalidPayload as e:
            self.dropped_payloads += 1
            logger.error(f"Dropped payload from {from_socket}: {e}")
            return 0

        with self._lock:
            room_id = self._socket_rooms.get(from_socket)
            if room_id is None:
                recipients: list[str] = []
            else:
                recipients = [
                    socket_id
                    for socket_id in self._members.get(room_id, ())
                    if socket_id != from_socket or event in wire.ECHO_TO_SENDER_EVENTS
                ]

        if room_id is None:
            logger.debug(f"Socket {from_socket} sent '{event}' without joining a room")
            return 0

        delivered = 0
        for socket_id in recipients:
            if self._deliver(socket_id, event, payload):
                delivered += 1
        self.relayed_count += delivered
        return delivered

    def _deliver(self, socket_id: str, event: str, payload: Any) -> bool:
        try:
            self._send(socket_id, event, payload)
            return True
        except Exception as e:
            self.failed_sends += 1
            logger.warning(f"Skipping socket {socket_id} for '{event}': {e}")
            return False
