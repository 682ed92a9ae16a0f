"""
Putt Party

Two-device mini-golf: a phone is the putter, a big screen shows the course.
The phone streams its heading and swings to the display through a room-based
ZeroMQ relay; the display turns swings into shots on a physics ball and keeps
score hole by hole.

Main Classes:
    RelayServer: ZeroMQ relay with the room directory and HTTP surface
    relay_client: Device connection to a relay room
    GameSession: Display-side game (aim, shots, hole state, scorecard)
    ControllerSession: Phone-side aim stream and swing capture

Examples:
    # Run the relay via CLI (after installation)
    putt-party-server
    putt-party-simulator --embedded

    # Use the relay programmatically
    from putt_party import RelayServer
    server = RelayServer(router_port=5555, enable_http=False)
    server.start()
    room_id = server.relay.create_room()
"""

from importlib.metadata import PackageNotFoundError, version

from .client import relay_client
from .controller import ControllerSession
from .relay import SessionRelay
from .server import RelayServer, get_version
from .session import GameSession
from .swing import SwingAnalyzer, analyze_swing
from .types import (
    aim_state,
    hole_state,
    orientation_sample,
    room_data,
    shot_descriptor,
    vector3,
)

# Export public API
__all__ = [
    # Relay API
    "RelayServer",
    "SessionRelay",
    "get_version",
    # Device API
    "relay_client",
    "GameSession",
    "ControllerSession",
    "SwingAnalyzer",
    "analyze_swing",
    # Data types
    "vector3",
    "orientation_sample",
    "shot_descriptor",
    "aim_state",
    "hole_state",
    "room_data",
]

try:
    __version__ = version("putt-party")
except PackageNotFoundError:
    __version__ = "unknown"
