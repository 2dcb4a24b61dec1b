"""
Density core: tile storage and pyramid generation

- gamma: sRGB <-> linear-light codec
- tile: bit-packed 1024x1024 presence tiles backed by numpy.memmap
- image: float rasters, PNG encode/decode, 2x2 linear-light downsampling
- spatial_map: world point -> tile routing, raw tile load, pyramid save (levels 0..7)
"""
from .image import Image
from .spatial_map import SaveFailure, SaveReport, SpatialMap
from .store import LRUEviction, NoEviction, TileStore
from .tile import Tile

__all__ = [
    "Image",
    "LRUEviction",
    "NoEviction",
    "SaveFailure",
    "SaveReport",
    "SpatialMap",
    "Tile",
    "TileStore",
]
