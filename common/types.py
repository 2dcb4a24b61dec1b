from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


# --- tile geometry ---
TILE_SHIFT = 10
TILE_SIZE = 1 << TILE_SHIFT          # cells per tile edge
TILE_MASK = TILE_SIZE - 1
TILE_BYTES = TILE_SIZE * TILE_SIZE // 8  # 131072, one bit per cell

# Observations further than this from the origin (either axis) are rejected
WORLD_LIMIT = 1_000_000

# Pyramid levels 0..7
LEVELS = 8


def in_domain(x: int, y: int) -> bool:
    """True if (x, y) lies inside the accepted world domain."""
    return abs(x) <= WORLD_LIMIT and abs(y) <= WORLD_LIMIT


@dataclass(frozen=True, slots=True)
class TileCoord:
    """Tile coordinate at some pyramid level; (tx, ty) = (x >> 10, y >> 10) at level 0."""
    tx: int
    ty: int

    def parent(self, levels: int = 1) -> "TileCoord":
        return TileCoord(self.tx >> levels, self.ty >> levels)

    def children(self) -> Tuple["TileCoord", "TileCoord", "TileCoord", "TileCoord"]:
        """Next-finer coordinates in quadrant order: TL, TR, BL, BR."""
        x, y = self.tx << 1, self.ty << 1
        return (
            TileCoord(x, y),
            TileCoord(x + 1, y),
            TileCoord(x, y + 1),
            TileCoord(x + 1, y + 1),
        )


@dataclass(frozen=True, slots=True)
class WorldPoint:
    """
    A single observed world position.

    Attributes:
        x, y: integer world coordinates (one unit == one tile cell).
    """
    x: int
    y: int

    @property
    def tile(self) -> TileCoord:
        return TileCoord(self.x >> TILE_SHIFT, self.y >> TILE_SHIFT)

    @property
    def offset(self) -> Tuple[int, int]:
        """(ix, iy) inside the tile."""
        return (self.x & TILE_MASK, self.y & TILE_MASK)

    @property
    def valid(self) -> bool:
        return in_domain(self.x, self.y)


@dataclass(frozen=True, slots=True)
class Observation:
    """A point from the feed, tagged with the routing key (server id) it came from."""
    routing_key: int
    x: int
    y: int

    @property
    def point(self) -> WorldPoint:
        return WorldPoint(self.x, self.y)
