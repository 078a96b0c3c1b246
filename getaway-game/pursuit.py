"""Pursuit AI: per-room tick loop steering pursuers toward the nearest player.

Each tick a unit tries, in order, a direct step toward its target, a
single-axis step, and a radial search around itself. A unit that keeps
failing to close distance switches to the radial search straight away, and a
unit that has not moved for several ticks explores far away at random until
it finds free ground.
"""

from __future__ import annotations

import logging
import math
import random

import game_config as config
from catalog import BODY_HEIGHT, BODY_WIDTH, CATCH_RADIUS, PURSUIT_ROSTER, PURSUIT_SPAWN
from models import Player, PursuitUnit, Room
from obstacles import ObstacleSet
from registry import SessionRegistry
from room_hub import RoomHub, room_group
from timers import IntervalRunner

log = logging.getLogger(__name__)

NOT_ADVANCING_THRESHOLD = 6
STUCK_THRESHOLD = 3
RADIAL_DIRECTIONS = 8
FORCED_RADIAL_DIRECTIONS = 16
RADIAL_STEPS = 3
EXPLORE_DIRECTIONS = 32
EXPLORE_RADII = (6, 10, 16)

DIRECT = "direct"
AXIS = "axis"
RADIAL = "radial"
EXPLORE = "explore"


def spawn_units() -> list[PursuitUnit]:
    sx, sy = PURSUIT_SPAWN
    return [
        PursuitUnit(unit_id=f"pursuer-{index + 1}", x=sx + dx, y=sy + dy, speed=speed)
        for index, (dx, dy, speed) in enumerate(PURSUIT_ROSTER)
    ]


def facing_for(dx: float, dy: float) -> str:
    if abs(dx) >= abs(dy):
        return "right" if dx > 0 else "left"
    return "down" if dy > 0 else "up"


def nearest_player(unit: PursuitUnit, players: list[Player]) -> tuple[Player, float]:
    best = min(players, key=lambda p: math.hypot(p.x - unit.x, p.y - unit.y))
    return best, math.hypot(best.x - unit.x, best.y - unit.y)


class PursuitEngine:
    def __init__(
        self,
        registry: SessionRegistry,
        hub: RoomHub,
        obstacles: ObstacleSet,
        tick_seconds: float = config.PURSUIT_TICK_SECONDS,
        catch_radius: float = CATCH_RADIUS,
        rng: random.Random | None = None,
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._obstacles = obstacles
        self._tick_seconds = tick_seconds
        self._catch_radius = catch_radius
        self._rng = rng or random.Random()

    async def start(self, room: Room) -> bool:
        """Begin the chase once per room; later calls are ignored."""
        if room.is_being_chased or room.is_over or not self._registry.is_live(room):
            return False
        room.is_being_chased = True
        room.pursuit_units = spawn_units()

        async def _tick() -> bool:
            return await self.tick(room)

        runner = IntervalRunner(_tick, self._tick_seconds, name=f"pursuit:{room.code}")
        room.pursuit_runner = runner
        log.info("Chase started in room %s", room.code)
        await self._hub.broadcast(
            room_group(room.code),
            {"type": "chase_started", "units": [u.to_dict() for u in room.pursuit_units]},
        )
        if self._registry.is_live(room) and not room.is_over:
            runner.start()
        return True

    def stop(self, room: Room) -> None:
        if room.pursuit_runner is not None:
            room.pursuit_runner.stop()

    async def tick(self, room: Room) -> bool:
        """Advance every unit once; returns False when the loop must stop."""
        if not self._registry.is_live(room) or room.is_over:
            return False
        players = list(room.players.values())
        caught_by: str | None = None
        if players:
            for unit in room.pursuit_units:
                self.step(unit, players)
                _, distance = nearest_player(unit, players)
                if distance < self._catch_radius and caught_by is None:
                    caught_by = unit.unit_id
        if caught_by is not None:
            room.game_lost = True
            room.arrested = True
            log.info("Room %s caught by %s", room.code, caught_by)

        await self._hub.broadcast(
            room_group(room.code),
            {"type": "pursuit_update", "units": [u.to_dict() for u in room.pursuit_units]},
        )
        if caught_by is None:
            return True
        if self._registry.is_live(room):
            await self._hub.broadcast(room_group(room.code), {"type": "game_over", "won": False, "reason": "arrested"})
        return False

    def step(self, unit: PursuitUnit, players: list[Player]) -> str | None:
        """Move ``unit`` toward its nearest player; returns how it moved, if at all."""
        target, distance = nearest_player(unit, players)
        if math.isfinite(unit.last_distance):
            if unit.last_distance - distance < unit.speed / 2:
                unit.not_advancing += 1
            elif unit.not_advancing > 0:
                unit.not_advancing -= 1
        unit.last_distance = distance
        if distance == 0:
            unit.moving = False
            return None

        dx = target.x - unit.x
        dy = target.y - unit.y
        kind: str | None = None
        move: tuple[float, float] | None = None
        forced = unit.not_advancing >= NOT_ADVANCING_THRESHOLD
        if not forced:
            move = self._direct(unit, dx, dy, distance)
            kind = DIRECT
            if move is None:
                move = self._axis(unit, dx, dy)
                kind = AXIS
        if move is None:
            directions = FORCED_RADIAL_DIRECTIONS if forced else RADIAL_DIRECTIONS
            move = self._radial(unit, target, directions)
            kind = RADIAL
        if move is None and unit.stuck >= STUCK_THRESHOLD:
            move = self._explore(unit)
            kind = EXPLORE
        if move is None:
            unit.stuck += 1
            unit.moving = False
            return None

        self._apply(unit, *move)
        unit.stuck = 0
        if kind == EXPLORE:
            unit.not_advancing = 0
            unit.last_distance = math.inf
        return kind

    def _free(self, x: float, y: float) -> bool:
        return self._obstacles.is_free(x, y, BODY_WIDTH, BODY_HEIGHT)

    def _direct(self, unit: PursuitUnit, dx: float, dy: float, distance: float) -> tuple[float, float] | None:
        length = min(unit.speed, distance)
        nx = unit.x + dx / distance * length
        ny = unit.y + dy / distance * length
        return (nx, ny) if self._free(nx, ny) else None

    def _axis(self, unit: PursuitUnit, dx: float, dy: float) -> tuple[float, float] | None:
        step_x = math.copysign(min(unit.speed, abs(dx)), dx)
        step_y = math.copysign(min(unit.speed, abs(dy)), dy)
        horizontal = (unit.x + step_x, unit.y) if dx else None
        vertical = (unit.x, unit.y + step_y) if dy else None
        order = (horizontal, vertical) if abs(dx) >= abs(dy) else (vertical, horizontal)
        for candidate in order:
            if candidate is not None and self._free(*candidate):
                return candidate
        return None

    def _radial(self, unit: PursuitUnit, target: Player, directions: int) -> tuple[float, float] | None:
        for k in range(1, RADIAL_STEPS + 1):
            radius = unit.speed * k
            best: tuple[float, float] | None = None
            best_distance = math.inf
            for i in range(directions):
                angle = 2 * math.pi * i / directions
                nx = unit.x + math.cos(angle) * radius
                ny = unit.y + math.sin(angle) * radius
                if not self._free(nx, ny):
                    continue
                remaining = math.hypot(target.x - nx, target.y - ny)
                if remaining < best_distance:
                    best, best_distance = (nx, ny), remaining
            if best is not None:
                return best
        return None

    def _explore(self, unit: PursuitUnit) -> tuple[float, float] | None:
        angles = [2 * math.pi * i / EXPLORE_DIRECTIONS for i in range(EXPLORE_DIRECTIONS)]
        self._rng.shuffle(angles)
        for scale in EXPLORE_RADII:
            radius = unit.speed * scale
            for angle in angles:
                nx = unit.x + math.cos(angle) * radius
                ny = unit.y + math.sin(angle) * radius
                if self._free(nx, ny):
                    return nx, ny
        return None

    def _apply(self, unit: PursuitUnit, nx: float, ny: float) -> None:
        unit.facing = facing_for(nx - unit.x, ny - unit.y)
        unit.x = nx
        unit.y = ny
        unit.moving = True
