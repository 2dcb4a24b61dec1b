from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from common.errors import FleetmapError
from common.logging_setup import get_logger
from common.types import Observation, in_domain
from density.spatial_map import SaveReport, SpatialMap
from density.store import EvictionPolicy, LRUEviction


log = get_logger(__name__)


class Collector:
    """
    Routes observations to SpatialMaps by routing key and drives load/save.

    These methods are the whole surface the polling layer uses:
    register_map, ingest, load_all, save_all.
    """

    def __init__(self, root: str | Path, *, workers: int = 1, max_resident_tiles: Optional[int] = None):
        self.root = Path(root)
        self.workers = workers
        self.max_resident_tiles = max_resident_tiles
        self.maps: List[SpatialMap] = []
        self._routes: Dict[int, SpatialMap] = {}

    def _eviction(self) -> Optional[EvictionPolicy]:
        if self.max_resident_tiles:
            return LRUEviction(self.max_resident_tiles)
        return None

    def register_map(self, name: str, routing_keys: Iterable[int]) -> SpatialMap:
        if any(m.name == name for m in self.maps):
            raise ValueError(f"map already registered: {name}")
        keys = [int(k) for k in routing_keys]
        for k in keys:
            owner = self._routes.get(k)
            if owner is not None:
                raise ValueError(f"routing key {k} already routed to {owner.name}")
        smap = SpatialMap(name, self.root, eviction=self._eviction(), workers=self.workers)
        self.maps.append(smap)
        for k in keys:
            self._routes[k] = smap
        log.info("map registered", extra={"map": name, "routing_keys": keys})
        return smap

    def get_map(self, name: str) -> Optional[SpatialMap]:
        for m in self.maps:
            if m.name == name:
                return m
        return None

    def ingest(self, routing_key: int, x: int, y: int) -> bool:
        """Record one point. Unknown routing keys and out-of-domain points are dropped (False)."""
        smap = self._routes.get(routing_key)
        if smap is None or not in_domain(x, y):
            return False
        smap.set(x, y)
        return True

    def ingest_many(self, observations: Iterable[Observation]) -> int:
        accepted = 0
        for obs in observations:
            if self.ingest(obs.routing_key, obs.x, obs.y):
                accepted += 1
        return accepted

    def load_all(self) -> int:
        """Load every map from disk. Errors propagate: a partial load must not be followed by a save."""
        total = 0
        for m in self.maps:
            total += m.load()
        return total

    def save_all(self) -> Dict[str, SaveReport]:
        """Render every map. A map that fails outright is logged and skipped."""
        reports: Dict[str, SaveReport] = {}
        for m in self.maps:
            try:
                reports[m.name] = m.save()
            except FleetmapError:
                log.exception("map save failed", extra={"map": m.name})
        return reports

    def flush(self) -> None:
        for m in self.maps:
            m.flush()

    def close(self) -> None:
        for m in self.maps:
            m.close()
