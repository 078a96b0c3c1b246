"""Real-time WebSocket hub fanning events out to room groups and NPC sub-groups."""

from __future__ import annotations

import logging
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

log = logging.getLogger(__name__)


def room_group(code: str) -> str:
    return code


def npc_group(code: str, npc_id: str) -> str:
    return f"{code}-npc-{npc_id}"


class RoomHub:
    """Manages per-connection WebSockets and their group memberships.

    Everything runs on one event loop and no method awaits while it mutates
    membership, so no lock is taken. A group is the room-wide group (the room
    code) or an NPC conversation sub-group of that room.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._member_groups: dict[str, set[str]] = {}
        self._group_members: dict[str, set[str]] = {}
        self._group_room: dict[str, str] = {}

    def connect(self, conn_id: str, ws: WebSocket) -> None:
        self._connections[conn_id] = ws
        self._member_groups.setdefault(conn_id, set())

    def disconnect(self, conn_id: str) -> None:
        self._connections.pop(conn_id, None)
        for group in self._member_groups.pop(conn_id, set()):
            self._discard_member(group, conn_id)

    def join(self, conn_id: str, group: str, room_code: str | None = None) -> None:
        self._group_members.setdefault(group, set()).add(conn_id)
        self._member_groups.setdefault(conn_id, set()).add(group)
        self._group_room[group] = room_code or group

    def leave(self, conn_id: str, group: str) -> None:
        groups = self._member_groups.get(conn_id)
        if groups is not None:
            groups.discard(group)
        self._discard_member(group, conn_id)

    def leave_room(self, conn_id: str, room_code: str) -> None:
        """Leave the room group and every NPC sub-group of ``room_code``."""
        for group in list(self._member_groups.get(conn_id, ())):
            if self._group_room.get(group) == room_code:
                self.leave(conn_id, group)

    def drop_room(self, room_code: str) -> None:
        """Forget every group of a deleted room so nothing more reaches it."""
        groups = [g for g, code in self._group_room.items() if code == room_code]
        for group in groups:
            for conn_id in self._group_members.pop(group, set()):
                member = self._member_groups.get(conn_id)
                if member is not None:
                    member.discard(group)
            self._group_room.pop(group, None)

    async def broadcast(self, group: str, event: dict[str, Any], exclude: str | None = None) -> None:
        stale: list[str] = []
        for conn_id in list(self._group_members.get(group, set())):
            if conn_id == exclude:
                continue
            ws = self._connections.get(conn_id)
            if ws is None or ws.client_state != WebSocketState.CONNECTED:
                stale.append(conn_id)
                continue
            try:
                await ws.send_json(event)
            except Exception:
                log.debug("Failed to send to connection %s, marking stale", conn_id)
                stale.append(conn_id)
        for conn_id in stale:
            self.disconnect(conn_id)

    async def send(self, conn_id: str, event: dict[str, Any]) -> None:
        ws = self._connections.get(conn_id)
        if ws is None or ws.client_state != WebSocketState.CONNECTED:
            return
        try:
            await ws.send_json(event)
        except Exception:
            log.debug("Failed to send to connection %s", conn_id)

    def _discard_member(self, group: str, conn_id: str) -> None:
        members = self._group_members.get(group)
        if not members:
            return
        members.discard(conn_id)
        if not members:
            del self._group_members[group]
            self._group_room.pop(group, None)
