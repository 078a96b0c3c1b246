"""WebSocket and HTTP routes for the getaway game."""

from __future__ import annotations

import json
import logging
import math
import uuid
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect

from errors import BadRequestError, NotFoundError, ValidationError
from models import Player, Room
from room_hub import room_group
from services import GameServices

log = logging.getLogger(__name__)

router = APIRouter()

Handler = Callable[[GameServices, str, dict[str, object]], Awaitable[None]]

# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_services(request: Request) -> GameServices:
    return request.app.state.services  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _required_string(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequestError(f"{key} is required")
    return value.strip()


def _required_number(data: dict[str, object], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BadRequestError(f"{key} must be a finite number")
    try:
        number = float(value)
    except OverflowError:
        raise BadRequestError(f"{key} must be a finite number") from None
    if not math.isfinite(number):
        raise BadRequestError(f"{key} must be a finite number")
    return number


def _room_code(data: dict[str, object]) -> str:
    return _required_string(data, "code").upper()


def _member(services: GameServices, conn_id: str, code: str) -> tuple[Room, Player]:
    room = services.registry.require(code)
    player = room.players.get(conn_id)
    if player is None:
        raise NotFoundError("Player not found")
    return room, player


async def _depart(services: GameServices, conn_id: str, room: Room) -> None:
    """Tell ``room`` the player is leaving, then drop them from it."""
    closing = room.host_id == conn_id or set(room.players) <= {conn_id}
    services.hub.leave_room(conn_id, room.code)
    await services.hub.broadcast(
        room_group(room.code),
        {"type": "player_left", "player_id": conn_id, "room_closed": closing},
    )
    services.registry.remove_player(conn_id)


# ---------------------------------------------------------------------------
# Client operations
# ---------------------------------------------------------------------------


async def _create_room(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    name = _required_string(data, "name")
    previous = services.registry.room_of(conn_id)
    if previous is not None:
        await _depart(services, conn_id, previous)
    room = services.registry.create_room(conn_id, name)
    services.hub.join(conn_id, room_group(room.code))
    await services.hub.send(conn_id, {"type": "room_created", "code": room.code, "room": room.summary()})


async def _join_room(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    code = _room_code(data)
    name = _required_string(data, "name")
    target = services.registry.check_joinable(code, conn_id)
    previous = services.registry.room_of(conn_id)
    if previous is not None and previous is not target:
        await _depart(services, conn_id, previous)
    room = services.registry.join_room(code, conn_id, name)
    services.hub.join(conn_id, room_group(room.code))
    await services.hub.send(conn_id, {"type": "room_joined", "code": room.code, "room": room.summary()})
    if services.registry.is_live(room):
        await services.hub.broadcast(
            room_group(room.code),
            {"type": "player_joined", "player_id": conn_id, "player": room.players[conn_id].to_dict()},
        )


async def _start_game(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    room = services.registry.start_game(_room_code(data), conn_id)
    await services.hub.broadcast(room_group(room.code), {"type": "game_started", "room": room.summary()})


async def _move(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    code = _room_code(data)
    position = data.get("position")
    if not isinstance(position, dict):
        raise BadRequestError("position is required")
    x = _required_number(position, "x")
    y = _required_number(position, "y")
    facing = data.get("facing")
    player = services.registry.record_movement(
        code,
        conn_id,
        x,
        y,
        facing if isinstance(facing, dict) else None,
        bool(data.get("moving", False)),
    )
    if player is None:
        return
    await services.hub.broadcast(
        room_group(code),
        {
            "type": "player_moved",
            "player_id": conn_id,
            "position": {"x": player.x, "y": player.y},
            "facing": player.facing,
            "moving": player.moving,
        },
        exclude=conn_id,
    )


async def _enter_npc_chat(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    room, _ = _member(services, conn_id, _room_code(data))
    event = services.dialogue.enter_chat(conn_id, room, _required_string(data, "npc_id"))
    await services.hub.send(conn_id, event)


async def _leave_npc_chat(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    services.dialogue.leave_chat(conn_id, _room_code(data), _required_string(data, "npc_id"))


async def _send_npc_message(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    room, player = _member(services, conn_id, _room_code(data))
    npc_id = _required_string(data, "npc_id")
    text = _required_string(data, "text")
    await services.dialogue.submit_message(room, npc_id, player.name, text)


async def _get_game_state(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    state = services.registry.game_state(_room_code(data))
    await services.hub.send(conn_id, {"type": "game_state", **state})


async def _perform_action(services: GameServices, conn_id: str, data: dict[str, object]) -> None:
    room = services.registry.require(_room_code(data))
    await services.objectives.perform_action(room, conn_id, _required_string(data, "action_id"))


_HANDLERS: dict[str, Handler] = {
    "create_room": _create_room,
    "join_room": _join_room,
    "start_game": _start_game,
    "move": _move,
    "enter_npc_chat": _enter_npc_chat,
    "leave_npc_chat": _leave_npc_chat,
    "send_npc_message": _send_npc_message,
    "get_game_state": _get_game_state,
    "perform_action": _perform_action,
}


async def handle_frame(services: GameServices, conn_id: str, raw: str) -> None:
    """Route one client frame; rejected requests only answer the sender."""
    try:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise BadRequestError("frame must be a JSON object") from None
        if not isinstance(data, dict):
            raise BadRequestError("frame must be a JSON object")
        handler = _HANDLERS.get(str(data.get("type", "")))
        if handler is None:
            raise BadRequestError(f"unknown message type: {data.get('type')!r}")
        await handler(services, conn_id, data)
    except ValidationError as exc:
        await services.hub.send(conn_id, {"type": "error", "message": str(exc)})
    except Exception:
        log.exception("Unhandled error for connection %s", conn_id)
        await services.hub.send(conn_id, {"type": "error", "message": "internal server error"})


async def drop_connection(services: GameServices, conn_id: str) -> None:
    room = services.registry.room_of(conn_id)
    if room is not None:
        await _depart(services, conn_id, room)
    services.hub.disconnect(conn_id)
    log.info("Connection %s closed", conn_id)


@router.websocket("/ws")
async def game_socket(ws: WebSocket) -> None:
    services: GameServices = ws.app.state.services
    await ws.accept()
    conn_id = uuid.uuid4().hex
    services.hub.connect(conn_id, ws)
    log.info("Connection %s opened", conn_id)
    await services.hub.send(conn_id, {"type": "connected", "player_id": conn_id})
    try:
        while True:
            raw = await ws.receive_text()
            await handle_frame(services, conn_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await drop_connection(services, conn_id)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@router.get("/healthz")
def healthz(services: GameServices = Depends(get_services)) -> dict[str, object]:
    return {"status": "ok", "rooms": len(services.registry)}


@router.get("/rooms/{code}")
def room_state(code: str, services: GameServices = Depends(get_services)) -> dict[str, object]:
    return services.registry.game_state(code.upper())
