"""Wiring of the game components shared by every connection."""

from __future__ import annotations

import random
from dataclasses import dataclass

import game_config as config
from dialogue import CompletionBackend, DialogueCoordinator
from objectives import ObjectiveEvaluator
from obstacles import ObstacleSet
from pursuit import PursuitEngine
from registry import SessionRegistry
from room_hub import RoomHub


@dataclass
class GameServices:
    registry: SessionRegistry
    hub: RoomHub
    dialogue: DialogueCoordinator
    pursuit: PursuitEngine
    objectives: ObjectiveEvaluator

    async def shutdown(self) -> None:
        self.registry.close_all()
        await self.dialogue.wait_idle()


def build_services(
    chat: CompletionBackend,
    obstacles: ObstacleSet | None = None,
    hub: RoomHub | None = None,
    debounce_seconds: float = config.NPC_DEBOUNCE_SECONDS,
    tick_seconds: float = config.PURSUIT_TICK_SECONDS,
    rng: random.Random | None = None,
) -> GameServices:
    hub = hub or RoomHub()
    registry = SessionRegistry(rng=rng, on_room_closed=hub.drop_room)
    pursuit = PursuitEngine(registry, hub, obstacles or ObstacleSet(), tick_seconds=tick_seconds, rng=rng)
    objectives = ObjectiveEvaluator(hub, pursuit)
    dialogue = DialogueCoordinator(
        registry,
        hub,
        chat,
        pursuit,
        objectives,
        debounce_seconds=debounce_seconds,
    )
    return GameServices(registry=registry, hub=hub, dialogue=dialogue, pursuit=pursuit, objectives=objectives)
