#!/usr/bin/env python3
"""
Rebuild the rendered pyramid (levels 0..7) from raw tiles, without polling.

Useful after deleting rendered levels, or to render on another machine from a
copy of the raw/ directories.

Examples:
  python scripts/rebuild_pyramid.py --config config/params.yaml
  python scripts/rebuild_pyramid.py --root data/fleetmap --map ETS2 --workers 8
"""
from __future__ import annotations

import argparse
import os
import sys

# Allow running as a plain script from the project root
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from collector.collector import Collector
from common.config import load_config
from common.errors import FleetmapError
from common.logging_setup import setup_logging


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--root", default=None, help="Storage root (overrides config)")
    ap.add_argument("--map", action="append", default=None, help="Map name to rebuild (repeatable; default: all configured)")
    ap.add_argument("--workers", type=int, default=None, help="Threads per pyramid level")
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P.get("logging", {}).get("level", "INFO"), force=True)
    storage = P.get("storage", {})
    root = args.root or storage.get("root", "data/fleetmap")
    names = args.map or [str(m["name"]) for m in P.get("maps", [])]

    collector = Collector(root, workers=args.workers or int(storage.get("workers", 1) or 1))
    for name in names:
        # Routing keys are irrelevant offline
        collector.register_map(name, [])

    try:
        n = collector.load_all()
    except FleetmapError as e:
        print(f"[error] load failed: {e}")
        sys.exit(1)
    print(f"[ok] loaded {n} raw tiles from {root}")

    reports = collector.save_all()
    collector.close()
    status = 0
    for name in names:
        r = reports.get(name)
        if r is None:
            print(f"[error] {name}: save aborted")
            status = 1
            continue
        levels = ", ".join(f"L{k}={v}" for k, v in sorted(r.written.items()))
        print(f"[ok] {name}: {levels} in {r.elapsed_s:.1f}s")
        for f in r.failures:
            print(f"[fail] {name} level {f.level} ({f.coord.tx},{f.coord.ty}): {f.error}")
            status = 1
    sys.exit(status)


if __name__ == "__main__":
    main()
