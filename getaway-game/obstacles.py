"""Static obstacle set: axis-aligned rectangles with a bucketed overlap query."""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from catalog import MAP_HEIGHT, MAP_WIDTH, TILE_SIZE

log = logging.getLogger(__name__)

# Tile ids that block movement in the exported collision layer.
BLOCKING_TILES = frozenset({1479, 1475})
GRID_COLUMNS = 120
PADDING_TILES = 10
TILE_OFFSET = 10


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def overlaps(self, x: float, y: float, width: float, height: float) -> bool:
        # Touching edges count as overlap.
        return (
            x + width >= self.x
            and x <= self.x + self.width
            and y + height >= self.y
            and y <= self.y + self.height
        )


class ObstacleSet:
    """Immutable rectangle set bucketed by tile for cheap collision queries."""

    def __init__(
        self,
        rects: Iterable[Rect] = (),
        map_width: float = MAP_WIDTH,
        map_height: float = MAP_HEIGHT,
        bucket_size: float = TILE_SIZE,
    ) -> None:
        self.map_width = map_width
        self.map_height = map_height
        self._bucket_size = bucket_size
        self._rects: tuple[Rect, ...] = tuple(rects)
        self._buckets: dict[tuple[int, int], list[Rect]] = {}
        for rect in self._rects:
            for key in self._keys(rect.x, rect.y, rect.width, rect.height):
                self._buckets.setdefault(key, []).append(rect)

    def __len__(self) -> int:
        return len(self._rects)

    def in_bounds(self, x: float, y: float, width: float = 0.0, height: float = 0.0) -> bool:
        if not (math.isfinite(x) and math.isfinite(y)):
            return False
        return 0 <= x and 0 <= y and x + width <= self.map_width and y + height <= self.map_height

    def collides(self, x: float, y: float, width: float, height: float) -> bool:
        seen: set[int] = set()
        for key in self._keys(x, y, width, height):
            for rect in self._buckets.get(key, ()):
                if id(rect) in seen:
                    continue
                seen.add(id(rect))
                if rect.overlaps(x, y, width, height):
                    return True
        return False

    def is_free(self, x: float, y: float, width: float, height: float) -> bool:
        return self.in_bounds(x, y, width, height) and not self.collides(x, y, width, height)

    def _keys(self, x: float, y: float, width: float, height: float) -> Iterable[tuple[int, int]]:
        size = self._bucket_size
        # Widen by one bucket on each side so edge-touching rects are found.
        col0 = math.floor(x / size) - 1
        col1 = math.floor((x + width) / size) + 1
        row0 = math.floor(y / size) - 1
        row1 = math.floor((y + height) / size) + 1
        for col in range(col0, col1 + 1):
            for row in range(row0, row1 + 1):
                yield col, row


def from_tile_grid(
    symbols: Sequence[int],
    columns: int = GRID_COLUMNS,
    tile_size: int = TILE_SIZE,
    blocking: frozenset[int] = BLOCKING_TILES,
) -> ObstacleSet:
    """Build obstacles from a flat, row-major tile export."""
    rects: list[Rect] = []
    for index, symbol in enumerate(symbols):
        if symbol not in blocking:
            continue
        row, col = divmod(index, columns)
        rects.append(
            Rect(
                x=float((col - PADDING_TILES + TILE_OFFSET) * tile_size),
                y=float((row - PADDING_TILES + TILE_OFFSET) * tile_size),
                width=float(tile_size),
                height=float(tile_size),
            )
        )
    return ObstacleSet(rects)


def load_obstacles(path: Path) -> ObstacleSet:
    """Load a tile export saved as a JSON array or as a ``collisions = [...]`` script.

    A missing file yields an empty set so the server still runs without map data.
    """
    if not path.exists():
        log.warning("Collision data %s not found; pursuit runs without obstacles", path)
        return ObstacleSet()
    raw = path.read_text(encoding="utf-8")
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        match = re.search(r"\[([\s\S]*)\]", raw)
        if not match:
            raise ValueError(f"no tile array found in {path}") from None
        body = match.group(1).strip().rstrip(",")
        decoded = json.loads(f"[{body}]")
    if not isinstance(decoded, list):
        raise ValueError(f"collision data in {path} must be a list")
    obstacles = from_tile_grid([int(v) for v in decoded])
    log.info("Loaded %d obstacles from %s", len(obstacles), path)
    return obstacles
