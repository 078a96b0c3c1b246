"""Session registry: owns every live Room and its lifecycle."""

from __future__ import annotations

import logging
import random
import string
from collections.abc import Callable

import game_config as config
from catalog import GUEST_SPAWN, HOST_SPAWN, NPC_TEMPLATES
from errors import FullError, NotFoundError, UnauthorizedError
from models import Player, Room, npc_from_template

log = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 6


class SessionRegistry:
    """In-memory room registry and presence rules."""

    def __init__(
        self,
        capacity: int = config.ROOM_CAPACITY,
        rng: random.Random | None = None,
        on_room_closed: Callable[[str], None] | None = None,
    ) -> None:
        self._rooms: dict[str, Room] = {}
        self._room_by_player: dict[str, str] = {}
        self._capacity = capacity
        self._rng = rng or random.Random()
        self._on_room_closed = on_room_closed

    def __len__(self) -> int:
        return len(self._rooms)

    def get(self, code: str) -> Room | None:
        return self._rooms.get(code)

    def is_live(self, room: Room) -> bool:
        """True while ``room`` is still the registered room for its code."""
        return self._rooms.get(room.code) is room

    def room_of(self, player_id: str) -> Room | None:
        code = self._room_by_player.get(player_id)
        return self._rooms.get(code) if code else None

    def require(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def create_room(self, player_id: str, name: str) -> Room:
        self.remove_player(player_id)
        code = self._new_code()
        x, y = HOST_SPAWN
        room = Room(
            code=code,
            host_id=player_id,
            npcs={npc_id: npc_from_template(t) for npc_id, t in NPC_TEMPLATES.items()},
        )
        room.players[player_id] = Player(player_id=player_id, name=name, x=x, y=y)
        self._rooms[code] = room
        self._room_by_player[player_id] = code
        log.info("Room %s created by %s", code, name)
        return room

    def check_joinable(self, code: str, player_id: str) -> Room:
        """The room ``player_id`` may join, or raise why not."""
        room = self.require(code)
        if player_id not in room.players and room.game_started and len(room.players) >= self._capacity:
            raise FullError("Room is full")
        return room

    def join_room(self, code: str, player_id: str, name: str) -> Room:
        room = self.check_joinable(code, player_id)
        if player_id in room.players:
            return room
        current = self.room_of(player_id)
        if current is not None and current is not room:
            self.remove_player(player_id)
            if not self.is_live(room):
                raise NotFoundError("Room not found")
        x, y = GUEST_SPAWN
        room.players[player_id] = Player(player_id=player_id, name=name, x=x, y=y)
        self._room_by_player[player_id] = code
        log.info("%s joined room %s", name, code)
        return room

    def start_game(self, code: str, requester_id: str) -> Room:
        room = self.require(code)
        if room.host_id != requester_id:
            raise UnauthorizedError("Only host can start the game")
        if len(room.players) < 1:
            raise UnauthorizedError("Need at least 1 player to start")
        room.game_started = True
        log.info("Game started in room %s", code)
        return room

    def record_movement(
        self,
        code: str,
        player_id: str,
        x: float,
        y: float,
        facing: dict[str, object] | None,
        moving: bool,
    ) -> Player | None:
        room = self._rooms.get(code)
        if room is None:
            return None
        player = room.players.get(player_id)
        if player is None:
            return None
        player.x = x
        player.y = y
        if facing is not None:
            player.facing = facing
        player.moving = moving
        return player

    def remove_player(self, player_id: str) -> tuple[Room | None, bool]:
        """Drop a player from their room; returns ``(room, room_deleted)``."""
        code = self._room_by_player.pop(player_id, None)
        room = self._rooms.get(code) if code else None
        if room is None:
            return None, False
        room.players.pop(player_id, None)
        if room.players and room.host_id != player_id:
            return room, False
        self._close(room)
        return room, True

    def game_state(self, code: str) -> dict[str, object]:
        return self.require(code).game_state()

    def close_all(self) -> None:
        for room in list(self._rooms.values()):
            self._close(room)

    def _close(self, room: Room) -> None:
        self._rooms.pop(room.code, None)
        for pid in list(room.players):
            if self._room_by_player.get(pid) == room.code:
                del self._room_by_player[pid]
        room.cancel_scheduled()
        log.info("Room %s deleted", room.code)
        if self._on_room_closed is not None:
            self._on_room_closed(room.code)

    def _new_code(self) -> str:
        while True:
            code = "".join(self._rng.choices(_CODE_ALPHABET, k=_CODE_LENGTH))
            if code not in self._rooms:
                return code
