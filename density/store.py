"""
Persistent storage for raw tiles.

MemmapByteStore  - one fixed-size file mapped into memory with numpy.memmap.
TileStore        - the sparse TileCoord -> Tile mapping owned by a SpatialMap,
                   with a pluggable eviction policy.
"""
from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

import numpy as np

from common.errors import StorageIOError
from common.logging_setup import get_logger
from common.types import TileCoord

if TYPE_CHECKING:  # pragma: no cover
    from density.tile import Tile


log = get_logger(__name__)


class MemmapByteStore:
    """
    A fixed-size, randomly writable byte region backed by a file.

    The file is created if needed and zero-extended (or truncated) to exactly
    `size` bytes. The mapping is a plain shared file mapping: no lock is taken,
    so other processes may open the same file read-only while this store holds
    it for writing.
    """

    concurrent_readers = True

    def __init__(self, path: Path, size: int, *, readonly: bool = False):
        self.path = Path(path)
        self.size = int(size)
        self.readonly = readonly
        try:
            if readonly:
                mode = "r"
            else:
                with open(self.path, "a+b") as f:
                    f.truncate(self.size)
                mode = "r+"
            self._buf: Optional[np.memmap] = np.memmap(self.path, dtype=np.uint8, mode=mode, shape=(self.size,))
        except (OSError, ValueError) as e:
            # ValueError: read-only mapping of a file shorter than `size`
            raise StorageIOError(f"cannot map {self.path}: {e}") from e

    @property
    def buffer(self) -> np.memmap:
        if self._buf is None:
            raise StorageIOError(f"store closed: {self.path}")
        return self._buf

    @property
    def closed(self) -> bool:
        return self._buf is None

    def flush(self) -> None:
        if self._buf is None or self.readonly:
            return
        try:
            self._buf.flush()
        except OSError as e:
            raise StorageIOError(f"flush failed for {self.path}: {e}") from e

    def close(self) -> None:
        if self._buf is None:
            return
        self.flush()
        # Dropping the last reference unmaps the file
        self._buf = None


# -------------------------
# Eviction policies
# -------------------------
class EvictionPolicy:
    """Decides which resident tiles to drop. Default: keep everything."""

    def select(self, resident: "OrderedDict[TileCoord, Tile]") -> List[TileCoord]:
        return []


class NoEviction(EvictionPolicy):
    pass


class LRUEviction(EvictionPolicy):
    """Keep at most `max_tiles` tiles resident; least recently used go first."""

    def __init__(self, max_tiles: int):
        if max_tiles < 1:
            raise ValueError("max_tiles must be >= 1")
        self.max_tiles = int(max_tiles)

    def select(self, resident: "OrderedDict[TileCoord, Tile]") -> List[TileCoord]:
        excess = len(resident) - self.max_tiles
        if excess <= 0:
            return []
        return list(resident.keys())[:excess]


class TileStore:
    """
    Sparse mapping of tile coordinates to open tiles.

    `coords()` covers every coordinate ever touched or loaded, resident or not.
    Evicted tiles are flushed and closed; `get()` reopens them from disk.
    """

    def __init__(self, open_tile: Callable[[TileCoord], "Tile"], policy: Optional[EvictionPolicy] = None):
        self._open_tile = open_tile
        self.policy = policy or NoEviction()
        self._resident: "OrderedDict[TileCoord, Tile]" = OrderedDict()
        self._known: Set[TileCoord] = set()

    def __len__(self) -> int:
        return len(self._known)

    def __contains__(self, coord: TileCoord) -> bool:
        return coord in self._known

    @property
    def resident_count(self) -> int:
        return len(self._resident)

    def coords(self) -> List[TileCoord]:
        return sorted(self._known, key=lambda c: (c.tx, c.ty))

    def get(self, coord: TileCoord) -> "Tile":
        """Return the tile at `coord`, opening (and creating on disk) as needed."""
        tile = self._resident.get(coord)
        if tile is not None:
            self._resident.move_to_end(coord)
            return tile
        tile = self._open_tile(coord)
        self._resident[coord] = tile
        self._known.add(coord)
        self._evict(keep=coord)
        return tile

    def add(self, coord: TileCoord, tile: "Tile") -> None:
        """Register an already opened tile (used by map load)."""
        old = self._resident.pop(coord, None)
        if old is not None and old is not tile:
            old.close()
        self._resident[coord] = tile
        self._known.add(coord)
        self._evict(keep=coord)

    def _evict(self, keep: TileCoord) -> None:
        for coord in self.policy.select(self._resident):
            if coord == keep:
                continue
            tile = self._resident.pop(coord)
            tile.close()
            log.debug("evicted tile", extra={"tx": coord.tx, "ty": coord.ty})

    def flush(self) -> None:
        for tile in self._resident.values():
            tile.flush()

    def close(self) -> None:
        for tile in self._resident.values():
            tile.close()
        self._resident.clear()

    def stats(self) -> Dict[str, int]:
        return {"known": len(self._known), "resident": len(self._resident)}
