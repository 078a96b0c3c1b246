"""Pursuit AI movement policy and tick loop tests."""

from __future__ import annotations

import asyncio
import math
import random

import pytest

from catalog import BODY_HEIGHT, BODY_WIDTH, MAP_HEIGHT, MAP_WIDTH
from models import Player, PursuitUnit
from obstacles import ObstacleSet, Rect
from pursuit import (
    AXIS,
    DIRECT,
    EXPLORE,
    NOT_ADVANCING_THRESHOLD,
    RADIAL,
    PursuitEngine,
    facing_for,
    spawn_units,
)
from fakes import make_services, seat_player


def _engine(rects: list[Rect] | None = None) -> PursuitEngine:
    services = make_services()
    return PursuitEngine(services.registry, services.hub, ObstacleSet(rects or []), rng=random.Random(3))


def _player(x: float, y: float) -> Player:
    return Player(player_id="p", name="Ana", x=x, y=y)


def test_spawn_units_have_distinct_speeds() -> None:
    units = spawn_units()
    assert len(units) == 3
    assert len({u.speed for u in units}) == 3
    assert len({(u.x, u.y) for u in units}) == 3


def test_facing_prefers_horizontal_on_ties() -> None:
    assert facing_for(5, 5) == "right"
    assert facing_for(-5, 5) == "left"
    assert facing_for(1, -4) == "up"
    assert facing_for(0, 3) == "down"


def test_direct_step_moves_full_speed_and_resets_stuck() -> None:
    engine = _engine()
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=30, stuck=2)

    kind = engine.step(unit, [_player(1300, 1400)])

    assert kind == DIRECT
    assert unit.x == pytest.approx(1018)
    assert unit.y == pytest.approx(1024)
    assert unit.stuck == 0
    assert unit.facing == "down"
    assert unit.moving


def test_direct_step_does_not_overshoot() -> None:
    engine = _engine()
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=30)
    engine.step(unit, [_player(1010, 1000)])
    assert (unit.x, unit.y) == (pytest.approx(1010), pytest.approx(1000))


def test_axis_step_when_direct_blocked() -> None:
    engine = _engine([Rect(1000, 1066, 100, 10)])
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=30, stuck=1)

    kind = engine.step(unit, [_player(1300, 1030)])

    assert kind == AXIS
    assert (unit.x, unit.y) == (1030, 1000)
    assert unit.facing == "right"
    assert unit.stuck == 0


def test_radial_search_steps_around_wall() -> None:
    engine = _engine([Rect(1040, 900, 10, 300)])
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=30)

    kind = engine.step(unit, [_player(1300, 1000)])

    assert kind == RADIAL
    assert unit.x + BODY_WIDTH < 1040
    assert unit.y == pytest.approx(1030)
    assert unit.facing == "down"


def test_forced_mode_skips_direct_step() -> None:
    engine = _engine()
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=20, not_advancing=NOT_ADVANCING_THRESHOLD)

    kind = engine.step(unit, [_player(1500, 1000)])

    assert kind == RADIAL
    assert (unit.x, unit.y) == (pytest.approx(1020), pytest.approx(1000))


def test_not_advancing_counter_rises_and_decays() -> None:
    engine = _engine()
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=20)
    target = _player(2000, 1000)

    engine.step(unit, [target])
    assert unit.not_advancing == 0
    # Target runs away as fast as the unit closes in.
    target.x += 20
    engine.step(unit, [target])
    assert unit.not_advancing == 1
    engine.step(unit, [target])
    assert unit.not_advancing == 0


def test_wide_exploration_after_stuck_ticks() -> None:
    engine = _engine([Rect(900, 900, 200, 200)])
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=10)
    target = _player(1500, 1000)

    for expected in (1, 2, 3):
        assert engine.step(unit, [target]) is None
        assert unit.stuck == expected
        assert not unit.moving

    kind = engine.step(unit, [target])

    assert kind == EXPLORE
    assert unit.stuck == 0
    assert unit.not_advancing == 0
    assert math.hypot(unit.x - 1000, unit.y - 1000) == pytest.approx(160)


def test_positions_stay_finite_and_in_bounds() -> None:
    rng = random.Random(11)
    rects = [Rect(rng.uniform(0, 1500), rng.uniform(0, 1500), 48, 48) for _ in range(120)]
    engine = _engine(rects)
    unit = PursuitUnit(unit_id="u", x=1200, y=1200, speed=34)
    target = _player(0, 0)

    for _ in range(300):
        engine.step(unit, [target])
        assert math.isfinite(unit.x) and math.isfinite(unit.y)
        assert 0 <= unit.x <= MAP_WIDTH - BODY_WIDTH
        assert 0 <= unit.y <= MAP_HEIGHT - BODY_HEIGHT


def test_targets_nearest_player() -> None:
    engine = _engine()
    unit = PursuitUnit(unit_id="u", x=1000, y=1000, speed=10)
    engine.step(unit, [_player(3000, 1000), _player(1000, 500)])
    assert unit.x == pytest.approx(1000)
    assert unit.y == pytest.approx(990)


@pytest.mark.asyncio
async def test_several_catches_emit_single_game_over() -> None:
    services = make_services()
    room, ws = seat_player(services)
    player = room.players["p1"]
    room.is_being_chased = True
    room.pursuit_units = [
        PursuitUnit(unit_id="a", x=player.x + 10, y=player.y, speed=20),
        PursuitUnit(unit_id="b", x=player.x - 10, y=player.y, speed=25),
        PursuitUnit(unit_id="c", x=player.x, y=player.y + 15, speed=30),
    ]

    assert await services.pursuit.tick(room) is False
    assert await services.pursuit.tick(room) is False

    assert room.game_lost and room.arrested
    assert ws.of_type("game_over") == [{"type": "game_over", "won": False, "reason": "arrested"}]
    assert len(ws.of_type("pursuit_update")) == 1


@pytest.mark.asyncio
async def test_start_is_idempotent_and_loop_broadcasts() -> None:
    services = make_services(tick=0.01)
    room, ws = seat_player(services)

    assert await services.pursuit.start(room) is True
    assert await services.pursuit.start(room) is False
    await asyncio.sleep(0.06)

    assert len(ws.of_type("chase_started")) == 1
    assert len(ws.of_type("pursuit_update")) >= 2
    assert room.pursuit_runner is not None and room.pursuit_runner.is_running
    services.registry.close_all()


@pytest.mark.asyncio
async def test_loop_stops_when_room_deleted() -> None:
    services = make_services(tick=0.01)
    room, ws = seat_player(services)
    await services.pursuit.start(room)
    await asyncio.sleep(0.03)

    services.registry.remove_player("p1")
    assert room.pursuit_runner is not None
    assert not room.pursuit_runner.is_running
    sent = len(ws.sent)
    await asyncio.sleep(0.05)
    assert len(ws.sent) == sent
    assert await services.pursuit.tick(room) is False


@pytest.mark.asyncio
async def test_tick_halts_after_escape() -> None:
    services = make_services()
    room, ws = seat_player(services)
    room.is_being_chased = True
    room.pursuit_units = spawn_units()
    room.game_won = True

    assert await services.pursuit.tick(room) is False
    assert ws.of_type("pursuit_update") == []


@pytest.mark.asyncio
async def test_start_ignored_after_game_over() -> None:
    services = make_services()
    room, ws = seat_player(services)
    room.game_lost = True

    assert await services.pursuit.start(room) is False
    assert not room.is_being_chased
    assert ws.of_type("chase_started") == []
