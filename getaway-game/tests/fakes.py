"""Shared stand-ins for sockets and the chat backend."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable
from typing import Any

from starlette.websockets import WebSocketState

from chat_client import ChatCompletionError
from models import Room
from obstacles import ObstacleSet
from room_hub import npc_group, room_group
from services import GameServices, build_services


class FakeWebSocket:
    """Minimal stand-in for starlette WebSocket."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.client_state = WebSocketState.CONNECTED
        self.closed = False

    async def send_json(self, data: dict[str, Any]) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED
        self.closed = True

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.sent if event.get("type") == event_type]


class ScriptedChat:
    """Chat backend returning canned replies, optionally held until released."""

    def __init__(
        self,
        replies: list[str] | None = None,
        responder: Callable[[list[dict[str, str]]], str] | None = None,
        fail: bool = False,
        hold: bool = False,
    ) -> None:
        self.replies = list(replies or [])
        self.responder = responder
        self.fail = fail
        self.calls: list[tuple[float, list[dict[str, str]]]] = []
        self.release = asyncio.Event()
        if not hold:
            self.release.set()

    async def complete(self, messages: list[dict[str, str]]) -> str:
        self.calls.append((time.monotonic(), [dict(m) for m in messages]))
        await self.release.wait()
        if self.fail:
            raise ChatCompletionError("backend unavailable")
        if self.responder is not None:
            return self.responder(messages)
        return self.replies.pop(0) if self.replies else "Hmm."


def make_services(
    chat: Any = None,
    debounce: float = 0.05,
    tick: float = 0.01,
    obstacles: ObstacleSet | None = None,
) -> GameServices:
    return build_services(
        chat or ScriptedChat(),
        obstacles=obstacles,
        debounce_seconds=debounce,
        tick_seconds=tick,
        rng=random.Random(7),
    )


def seat_player(
    services: GameServices,
    player_id: str = "p1",
    name: str = "Ana",
    code: str | None = None,
    npc_id: str | None = None,
) -> tuple[Room, FakeWebSocket]:
    """Connect a fake socket, put the player in a room and optionally in an NPC chat."""
    ws = FakeWebSocket()
    services.hub.connect(player_id, ws)  # type: ignore[arg-type]
    if code is None:
        room = services.registry.create_room(player_id, name)
    else:
        room = services.registry.join_room(code, player_id, name)
    services.hub.join(player_id, room_group(room.code))
    if npc_id is not None:
        services.hub.join(player_id, npc_group(room.code, npc_id), room_code=room.code)
    return room, ws
