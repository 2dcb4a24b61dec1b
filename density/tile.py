from __future__ import annotations

import os
from pathlib import Path

import numpy as np

from common.errors import FleetmapError, StorageIOError
from common.types import TILE_BYTES, TILE_SIZE
from density.image import Image
from density.store import MemmapByteStore


class Tile:
    """
    1024x1024 bit matrix: "was a point ever observed in this cell".

    Cell (ix, iy) lives at index i = iy*1024 + ix, byte i >> 3, bit i & 7
    (bit 0 = least significant). Bits are only ever set.
    """

    def __init__(self, store: MemmapByteStore):
        if store.size != TILE_BYTES:
            raise ValueError(f"tile store must be {TILE_BYTES} bytes, got {store.size}")
        self.store = store

    @classmethod
    def load(cls, path: Path, *, readonly: bool = False) -> "Tile":
        """Open (creating and zero-filling if needed) the raw tile file at `path`."""
        return cls(MemmapByteStore(Path(path), TILE_BYTES, readonly=readonly))

    @property
    def path(self) -> Path:
        return self.store.path

    def set(self, ix: int, iy: int) -> None:
        i = _cell_index(ix, iy)
        self.store.buffer[i >> 3] |= np.uint8(1 << (i & 7))

    def is_set(self, ix: int, iy: int) -> bool:
        i = _cell_index(ix, iy)
        return bool(self.store.buffer[i >> 3] & (1 << (i & 7)))

    def count(self) -> int:
        """Number of set cells."""
        return int(np.unpackbits(np.asarray(self.store.buffer)).sum())

    def bits(self) -> np.ndarray:
        """(1024, 1024) uint8 array of 0/1, indexed [iy, ix]."""
        flat = np.unpackbits(np.asarray(self.store.buffer), bitorder="little")
        return flat.reshape(TILE_SIZE, TILE_SIZE)

    def to_image(self) -> Image:
        return Image(self.bits().astype(np.float32))

    def save(self, path: Path) -> None:
        """Render to a level-0 raster at `path`, replacing it atomically."""
        path = Path(path)
        # Same directory and same extension so the encoder is picked from the suffix
        tmp = path.with_name(f".{path.stem}.tmp{path.suffix}")
        try:
            self.to_image().save(tmp)
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageIOError(f"cannot write {path}: {e}") from e
        except FleetmapError:
            tmp.unlink(missing_ok=True)
            raise

    def flush(self) -> None:
        self.store.flush()

    def close(self) -> None:
        self.store.close()


def _cell_index(ix: int, iy: int) -> int:
    if not (0 <= ix < TILE_SIZE and 0 <= iy < TILE_SIZE):
        raise IndexError(f"cell ({ix}, {iy}) outside tile")
    return iy * TILE_SIZE + ix
