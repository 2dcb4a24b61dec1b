from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from common.errors import CoordinateParseError, FleetmapError, StorageIOError
from common.logging_setup import get_logger
from common.types import LEVELS, TileCoord, WorldPoint
from density.image import Image
from density.store import EvictionPolicy, TileStore
from density.tile import Tile


log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SaveFailure:
    level: int
    coord: TileCoord
    error: str


@dataclass(slots=True)
class SaveReport:
    """Outcome of a save pass: rasters written per level and every per-tile failure."""
    written: Dict[int, int] = field(default_factory=dict)
    failures: List[SaveFailure] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total_written(self) -> int:
        return sum(self.written.values())

    def merge(self, other: "SaveReport") -> None:
        for level, n in other.written.items():
            self.written[level] = self.written.get(level, 0) + n
        self.failures.extend(other.failures)


class SpatialMap:
    """
    Density map for one logical map, rooted at {base}/{name}/:

        raw/{tx}/{ty}.dat        bit-packed tiles (source of truth)
        {level}/{tx}/{ty}.png    rendered pyramid, level 0..7

    `load()` must run before the first `save()` of a process, otherwise
    pyramid levels are rebuilt from the tiles touched this session only.
    """

    def __init__(
        self,
        name: str,
        base: Path,
        *,
        eviction: Optional[EvictionPolicy] = None,
        workers: int = 1,
    ):
        self.name = name
        self.path = Path(base) / name
        self.workers = max(1, int(workers))
        self.tiles = TileStore(self._open_tile, eviction)

    # -------- paths --------

    @property
    def raw_dir(self) -> Path:
        return self.path / "raw"

    def level_dir(self, level: int) -> Path:
        return self.path / str(level)

    def raw_path(self, coord: TileCoord) -> Path:
        return self.raw_dir / str(coord.tx) / f"{coord.ty}.dat"

    def raster_path(self, level: int, coord: TileCoord) -> Path:
        return self.level_dir(level) / str(coord.tx) / f"{coord.ty}.png"

    def _open_tile(self, coord: TileCoord) -> Tile:
        path = self.raw_path(coord)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"cannot create {path.parent}: {e}") from e
        return Tile.load(path)

    # -------- ingest --------

    def set(self, x: int, y: int) -> None:
        p = WorldPoint(x, y)
        ix, iy = p.offset
        self.tiles.get(p.tile).set(ix, iy)

    def tile_coords(self) -> List[TileCoord]:
        return self.tiles.coords()

    def level_coords(self, level: int) -> List[TileCoord]:
        """Distinct level-`level` coordinates covering every known base tile."""
        coords = {c.parent(level) for c in self.tiles.coords()}
        return sorted(coords, key=lambda c: (c.tx, c.ty))

    # -------- save --------

    def save_base_level(self) -> SaveReport:
        report = SaveReport(written={0: 0})
        for coord in self.tiles.coords():
            try:
                # reopening an evicted tile can fail; that is this tile's failure only
                tile = self.tiles.get(coord)
                tile.flush()
                tile.save(self.raster_path(0, coord))
                report.written[0] += 1
            except FleetmapError as e:
                self._record_failure(report, 0, coord, e)
        return report

    def save_level(self, level: int) -> SaveReport:
        if not 1 <= level < LEVELS:
            raise ValueError(f"level must be in 1..{LEVELS - 1}, got {level}")
        source = self.level_dir(level - 1)
        report = SaveReport(written={level: 0})

        def _render(coord: TileCoord) -> Tuple[TileCoord, Optional[FleetmapError]]:
            try:
                img = Image.compose_from_children(source, coord.tx, coord.ty)
                img.save(self.raster_path(level, coord))
            except FleetmapError as e:
                return coord, e
            return coord, None

        coords = self.level_coords(level)
        if self.workers > 1 and len(coords) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                results = list(pool.map(_render, coords))
        else:
            results = [_render(c) for c in coords]

        for coord, err in results:
            if err is None:
                report.written[level] += 1
            else:
                self._record_failure(report, level, coord, err)
        return report

    def save(self) -> SaveReport:
        """Base level, then levels 1..7 in order (each reads the previous one)."""
        t0 = time.perf_counter()
        report = self.save_base_level()
        for level in range(1, LEVELS):
            report.merge(self.save_level(level))
        report.elapsed_s = time.perf_counter() - t0
        log.info(
            "map saved",
            extra={
                "map": self.name,
                "tiles": len(self.tiles),
                "written": report.total_written,
                "failures": len(report.failures),
                "elapsed_s": round(report.elapsed_s, 3),
            },
        )
        return report

    def _record_failure(self, report: SaveReport, level: int, coord: TileCoord, err: Exception) -> None:
        report.failures.append(SaveFailure(level=level, coord=coord, error=str(err)))
        log.error(
            "raster save failed",
            extra={"map": self.name, "level": level, "tx": coord.tx, "ty": coord.ty, "error": str(err)},
        )

    # -------- load --------

    def load(self) -> int:
        """
        Open every raw tile under raw/. Returns the number loaded.
        A missing raw/ directory is an empty map; anything unreadable raises.
        """
        if not self.raw_dir.exists():
            log.info("no raw tiles yet", extra={"map": self.name, "path": str(self.raw_dir)})
            return 0
        count = 0
        try:
            for x_dir in sorted(self.raw_dir.iterdir()):
                tx = _parse_coord(x_dir.name, x_dir)
                if not x_dir.is_dir():
                    raise CoordinateParseError(f"expected a directory: {x_dir}")
                for dat in sorted(x_dir.iterdir()):
                    if dat.suffix != ".dat":
                        continue
                    ty = _parse_coord(dat.stem, dat)
                    self.tiles.add(TileCoord(tx, ty), Tile.load(dat))
                    count += 1
        except OSError as e:
            raise StorageIOError(f"cannot read {self.raw_dir}: {e}") from e
        log.info("map loaded", extra={"map": self.name, "tiles": count})
        return count

    # -------- misc --------

    def flush(self) -> None:
        self.tiles.flush()

    def close(self) -> None:
        self.tiles.close()

    def stats(self) -> Dict[str, object]:
        return {"name": self.name, **self.tiles.stats()}


def _parse_coord(text: str, path: Path) -> int:
    try:
        return int(text)
    except ValueError as e:
        raise CoordinateParseError(f"bad tile coordinate {text!r} in {path}") from e
