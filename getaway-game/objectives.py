"""Objective evaluator: action-zone requirements and win transitions."""

from __future__ import annotations

import logging

from catalog import ACTION_ZONES, WINNING_ACTIONS
from errors import (
    AlreadyCompletedError,
    GameOverError,
    InvalidActionError,
    MissingItemError,
    NotFoundError,
)
from models import Room
from pursuit import PursuitEngine
from room_hub import RoomHub, room_group

log = logging.getLogger(__name__)


def check_win(room: Room) -> bool:
    return any(action_id in WINNING_ACTIONS for action_id in room.completed_actions)


class ObjectiveEvaluator:
    def __init__(self, hub: RoomHub, pursuit: PursuitEngine) -> None:
        self._hub = hub
        self._pursuit = pursuit

    async def perform_action(self, room: Room, player_id: str, action_id: str) -> None:
        player = room.players.get(player_id)
        if player is None:
            raise NotFoundError("Player not found")
        zone = ACTION_ZONES.get(action_id)
        if zone is None:
            raise InvalidActionError("Invalid action")
        if zone.required_item not in room.shared_inventory:
            raise MissingItemError(f"You need a {zone.required_item} to perform this action")
        if action_id in room.completed_actions:
            raise AlreadyCompletedError("This action has already been completed")
        if room.is_over:
            raise GameOverError("The game is already over")

        room.completed_actions.append(action_id)
        if action_id == "borderExit":
            room.crossed_border = True
        log.info("Player %s completed action %s in room %s", player.name, action_id, room.code)
        await self._hub.broadcast(
            room_group(room.code),
            {
                "type": "action_completed",
                "action": action_id,
                "message": zone.message,
                "completed_by": player.name,
            },
        )
        if zone.winning:
            await self.settle(room)

    async def settle(self, room: Room) -> bool:
        """Apply the win transition once; True if this call ended the game."""
        if room.is_over or not check_win(room):
            return False
        room.game_won = True
        self._pursuit.stop(room)
        log.info("Room %s escaped", room.code)
        await self._hub.broadcast(room_group(room.code), {"type": "game_over", "won": True, "reason": "escaped"})
        return True
