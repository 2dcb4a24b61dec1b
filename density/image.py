"""
Float raster for one tile at one pyramid level.

`data` is a (1024, 1024) float32 array of linear-light intensity in [0, 1],
indexed [row, col] == [iy, ix]. Files on disk are 8-bit grayscale PNGs holding
gamma-encoded values; conversion goes through density.gamma both ways.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from common.errors import FleetmapError, RasterCodecError, StorageIOError
from common.logging_setup import get_logger
from common.types import TILE_SIZE
from density import gamma


log = get_logger(__name__)

HALF = TILE_SIZE // 2

# (row offset, col offset) of the TL, TR, BL, BR quadrants
_QUADRANTS = ((0, 0), (0, HALF), (HALF, 0), (HALF, HALF))


def _read_gray8(path: Path) -> np.ndarray:
    """Read any raster OpenCV understands as a 1024x1024 uint8 grayscale array."""
    if not path.is_file():
        raise StorageIOError(f"not a raster file: {path}")
    img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if img is None:
        raise RasterCodecError(f"cannot decode raster: {path}")
    if img.shape != (TILE_SIZE, TILE_SIZE):
        raise RasterCodecError(f"unexpected raster size {img.shape[1]}x{img.shape[0]}: {path}")
    return img


class Image:
    def __init__(self, data: Optional[np.ndarray] = None):
        if data is None:
            data = np.zeros((TILE_SIZE, TILE_SIZE), dtype=np.float32)
        data = np.asarray(data, dtype=np.float32)
        if data.shape != (TILE_SIZE, TILE_SIZE):
            raise ValueError(f"image data must be {TILE_SIZE}x{TILE_SIZE}, got {data.shape}")
        self.data = np.clip(np.nan_to_num(data, nan=0.0), 0.0, 1.0)

    @classmethod
    def new(cls) -> "Image":
        return cls()

    @classmethod
    def load(cls, path: Path) -> "Image":
        return cls(gamma.decode(_read_gray8(Path(path))))

    @staticmethod
    def load_half_scaled(path: Path) -> np.ndarray:
        """
        Load a rendered raster and shrink it to 512x512 by averaging each
        2x2 block in linear light.
        """
        lin = gamma.decode(_read_gray8(Path(path)))
        return lin.reshape(HALF, 2, HALF, 2).mean(axis=(1, 3), dtype=np.float32)

    @classmethod
    def compose_from_children(cls, base_dir: Path, tx: int, ty: int) -> "Image":
        """
        Build the level-n raster for (tx, ty) from the four level-(n-1) rasters
        under `base_dir`. A child that is missing (or unreadable) leaves its
        quadrant black.
        """
        base_dir = Path(base_dir)
        image = cls()
        children = (
            (tx << 1, ty << 1),
            ((tx << 1) + 1, ty << 1),
            (tx << 1, (ty << 1) + 1),
            ((tx << 1) + 1, (ty << 1) + 1),
        )
        for (cx, cy), (r0, c0) in zip(children, _QUADRANTS):
            child = base_dir / str(cx) / f"{cy}.png"
            if not child.exists():
                continue
            try:
                half = cls.load_half_scaled(child)
            except FleetmapError as e:
                log.warning("child raster skipped", extra={"path": str(child), "error": str(e)})
                continue
            image.paste(half, r0, c0)
        return image

    def paste(self, block: np.ndarray, row: int, col: int) -> None:
        h, w = block.shape
        self.data[row : row + h, col : col + w] = np.clip(block, 0.0, 1.0)

    def to_gray8(self) -> np.ndarray:
        return gamma.encode(self.data)

    def save(self, path: Path) -> None:
        """Gamma-encode and write as an 8-bit grayscale raster (format from the suffix)."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"cannot create {path.parent}: {e}") from e
        try:
            ok = cv2.imwrite(str(path), self.to_gray8())
        except cv2.error as e:
            raise RasterCodecError(f"cannot encode {path}: {e}") from e
        if not ok:
            raise StorageIOError(f"cannot write raster: {path}")
