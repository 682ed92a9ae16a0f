from __future__ import annotations

import logging
import threading

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from .errors import RoomCapacityExceeded
from .relay import SessionRelay

logger = logging.getLogger(__name__)


class RoomsResponse(BaseModel):
    """Live room ids after lazy eviction."""

    rooms: list[str] = Field(default_factory=list)


class RoomDetail(BaseModel):
    """Directory entry of one room."""

    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId")
    connected_count: int = Field(alias="connectedCount")
    created_at: float = Field(alias="createdAt")
    game_type: str = Field(alias="gameType")


class HealthResponse(BaseModel):
    """Liveness probe payload."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    active_rooms: int = Field(alias="activeRooms")
    uptime: float


def create_app(relay: SessionRelay, game_path: str = "/game.html") -> FastAPI:
    """Create the FastAPI application serving room creation and listing."""
    app = FastAPI(title="Putt Party Relay", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/create-room")
    def create_room() -> RedirectResponse:
        """Allocate a room and send the display to its entry point."""
        try:
            room_id = relay.create_room()
        except RoomCapacityExceeded as exc:
            logger.warning(f"Room creation refused: {exc}")
            raise HTTPException(status_code=503, detail=exc.message) from exc
        return RedirectResponse(url=f"{game_path}?room={room_id}", status_code=302)

    @app.get("/rooms", response_model=RoomsResponse)
    def list_rooms() -> RoomsResponse:
        return RoomsResponse(rooms=relay.list_rooms())

    @app.get("/rooms/{room_id}", response_model=RoomDetail)
    def get_room(room_id: str) -> RoomDetail:
        room = relay.get_room(room_id.lower())
        if room is None:
            raise HTTPException(status_code=404, detail="Room does not exist")
        return RoomDetail(
            room_id=room.room_id,
            connected_count=room.connected_count,
            created_at=room.created_at,
            game_type=room.game_type,
        )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        info = relay.health()
        return HealthResponse(
            status=info["status"],
            active_rooms=info["activeRooms"],
            uptime=info["uptime"],
        )

    return app


def run_uvicorn_in_thread(
    app: FastAPI, host: str = "0.0.0.0", port: int = 3000
) -> tuple[threading.Thread, "uvicorn.Server"]:
    """Spawn a Uvicorn server for the given FastAPI app in a background thread."""
    import uvicorn

    config = uvicorn.Config(
        app=app, host=host, port=port, log_level="warning", lifespan="off"
    )
    server = uvicorn.Server(config=config)
    thread = threading.Thread(target=server.run, name="HttpThread", daemon=True)
    thread.start()
    return thread, server
