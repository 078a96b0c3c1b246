"""Game state dataclass definitions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from catalog import NpcTemplate
from timers import DebounceTimer, IntervalRunner


def _default_facing() -> dict[str, object]:
    return {"row": 0, "frame": 0}


@dataclass
class Player:
    player_id: str
    name: str
    x: float
    y: float
    facing: dict[str, object] = field(default_factory=_default_facing)
    moving: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.player_id,
            "name": self.name,
            "position": {"x": self.x, "y": self.y},
            "facing": self.facing,
            "moving": self.moving,
        }


@dataclass
class NpcState:
    npc_id: str
    name: str
    location: str
    system_prompt: str
    history: list[dict[str, str]] = field(default_factory=list)
    pending: list[dict[str, str]] = field(default_factory=list)
    timer: DebounceTimer = field(default_factory=DebounceTimer)


def npc_from_template(template: NpcTemplate) -> NpcState:
    """Fresh per-room NPC state; templates are never mutated or shared."""
    return NpcState(
        npc_id=template.npc_id,
        name=template.name,
        location=template.location,
        system_prompt=template.system_prompt,
        timer=DebounceTimer(name=template.npc_id),
    )


@dataclass
class PursuitUnit:
    unit_id: str
    x: float
    y: float
    speed: float
    last_distance: float = math.inf
    not_advancing: int = 0
    stuck: int = 0
    facing: str = "down"
    moving: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.unit_id,
            "position": {"x": round(self.x, 2), "y": round(self.y, 2)},
            "facing": self.facing,
            "moving": self.moving,
        }


@dataclass
class Room:
    code: str
    host_id: str
    players: dict[str, Player] = field(default_factory=dict)
    npcs: dict[str, NpcState] = field(default_factory=dict)
    shared_inventory: list[str] = field(default_factory=list)
    completed_actions: list[str] = field(default_factory=list)
    game_started: bool = False
    is_being_chased: bool = False
    game_won: bool = False
    game_lost: bool = False
    arrested: bool = False
    crossed_border: bool = False
    pursuit_units: list[PursuitUnit] = field(default_factory=list)
    pursuit_runner: IntervalRunner | None = None

    @property
    def is_over(self) -> bool:
        return self.game_won or self.game_lost

    def grant(self, item: str) -> bool:
        if item in self.shared_inventory:
            return False
        self.shared_inventory.append(item)
        return True

    def cancel_scheduled(self) -> None:
        """Cancel every timer and loop this room owns."""
        for npc in self.npcs.values():
            npc.timer.cancel()
        if self.pursuit_runner is not None:
            self.pursuit_runner.stop()

    def summary(self) -> dict[str, object]:
        return {
            "code": self.code,
            "host_id": self.host_id,
            "players": {pid: player.to_dict() for pid, player in self.players.items()},
            "npcs": {
                nid: {"id": npc.npc_id, "name": npc.name, "location": npc.location}
                for nid, npc in self.npcs.items()
            },
            "game_started": self.game_started,
            "shared_inventory": list(self.shared_inventory),
            "completed_actions": list(self.completed_actions),
        }

    def game_state(self) -> dict[str, object]:
        return {
            "shared_inventory": list(self.shared_inventory),
            "completed_actions": list(self.completed_actions),
            "is_being_chased": self.is_being_chased,
            "arrested": self.arrested,
            "crossed_border": self.crossed_border,
            "game_won": self.game_won,
            "game_lost": self.game_lost,
        }
