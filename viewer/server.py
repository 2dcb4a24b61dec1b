from __future__ import annotations

"""
Read-only viewer for the rendered pyramid.

- GET /health
- GET /maps                           maps and raster counts per level
- GET /tiles/{map}/{level}/{x}/{y}.png
- GET /raw/{map}/{x}/{y}              set-cell count of a raw tile

Raw tiles are opened read-only next to the collector's writable mapping.
"""

from pathlib import Path
from typing import Dict, List

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from common.config import load_config
from common.errors import StorageIOError
from common.logging_setup import get_logger
from common.types import LEVELS
from density.tile import Tile


log = get_logger("viewer")


def _map_dir(root: Path, name: str) -> Path:
    # Map names come straight from the URL; only direct children of root are served
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise HTTPException(status_code=404, detail="unknown_map")
    d = root / name
    if not d.is_dir():
        raise HTTPException(status_code=404, detail="unknown_map")
    return d


def _level_counts(map_dir: Path) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for level in range(LEVELS):
        d = map_dir / str(level)
        counts[str(level)] = sum(1 for p in d.glob("*/*.png") if not p.name.startswith(".")) if d.is_dir() else 0
    return counts


def create_app(root: str | Path) -> FastAPI:
    root = Path(root)
    app = FastAPI(title="fleetmap viewer", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "root": str(root), "root_exists": root.is_dir()}

    @app.get("/maps")
    def maps():
        out: List[Dict] = []
        if root.is_dir():
            for d in sorted(p for p in root.iterdir() if p.is_dir()):
                out.append({"name": d.name, "levels": _level_counts(d)})
        return {"maps": out}

    @app.get("/tiles/{name}/{level}/{x}/{y}.png")
    def tile(name: str, level: int, x: int, y: int):
        if not 0 <= level < LEVELS:
            raise HTTPException(status_code=404, detail="bad_level")
        path = _map_dir(root, name) / str(level) / str(x) / f"{y}.png"
        if not path.is_file():
            raise HTTPException(status_code=404, detail="tile_not_found")
        return FileResponse(
            path,
            media_type="image/png",
            headers={"Cache-Control": "public, max-age=60", "X-Tile-Level": str(level)},
        )

    @app.get("/raw/{name}/{x}/{y}")
    def raw(name: str, x: int, y: int):
        path = _map_dir(root, name) / "raw" / str(x) / f"{y}.dat"
        if not path.is_file():
            raise HTTPException(status_code=404, detail="tile_not_found")
        try:
            t = Tile.load(path, readonly=True)
        except StorageIOError as e:
            log.warning("raw tile unreadable", extra={"path": str(path), "error": str(e)})
            raise HTTPException(status_code=409, detail="tile_unreadable") from e
        try:
            return {"map": name, "x": x, "y": y, "cells": t.count()}
        finally:
            t.close()

    return app


P = load_config()
app = create_app(P.get("storage", {}).get("root", "data/fleetmap"))


# -------- local dev entrypoint --------
if __name__ == "__main__":
    vcfg = P.get("viewer", {})
    uvicorn.run(app, host=vcfg.get("host", "0.0.0.0"), port=int(vcfg.get("port", 8000)))
