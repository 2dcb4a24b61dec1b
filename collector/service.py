from __future__ import annotations

"""
Collector service: poll the position feed, accumulate density tiles and
re-render the pyramid periodically.

Examples:
  # Long-running collector with the defaults from config/params.yaml
  python -m collector.service --config config/params.yaml

  # One poll + one save, useful from cron or for a smoke test
  python -m collector.service --config config/params.yaml --once
"""

import argparse
import sys
import time
from typing import Dict, Optional

import requests

from collector.collector import Collector
from collector.feed import FeedClient
from common.config import load_config
from common.errors import FleetmapError
from common.logging_setup import get_logger, setup_logging


log = get_logger("collector")


def build_collector(P: Dict) -> Collector:
    storage = P.get("storage", {})
    collector = Collector(
        storage.get("root", "data/fleetmap"),
        workers=int(storage.get("workers", 1) or 1),
        max_resident_tiles=storage.get("max_resident_tiles"),
    )
    for m in P.get("maps", []):
        collector.register_map(str(m["name"]), m.get("routing_keys", []))
    return collector


def poll_once(collector: Collector, feed: FeedClient) -> Optional[int]:
    """Fetch and ingest one feed snapshot. Returns accepted count, or None if the poll failed."""
    try:
        observations = feed.fetch()
    except (requests.RequestException, FleetmapError) as e:
        log.error("feed poll failed", extra={"error": str(e)})
        return None
    accepted = collector.ingest_many(observations)
    log.debug("feed polled", extra={"received": len(observations), "accepted": accepted})
    return accepted


def save(collector: Collector) -> None:
    t0 = time.perf_counter()
    reports = collector.save_all()
    failures = sum(len(r.failures) for r in reports.values())
    log.info(
        "save complete",
        extra={"maps": len(reports), "failures": failures, "elapsed_s": round(time.perf_counter() - t0, 2)},
    )


def run(P: Dict, *, once: bool = False) -> int:
    collector = build_collector(P)
    feed_cfg = P.get("feed", {})
    feed = FeedClient(feed_cfg["url"], timeout=float(feed_cfg.get("timeout_s", 10.0)))
    svc = P.get("service", {})
    poll_interval = float(svc.get("poll_interval_s", 2.0))
    save_interval = float(svc.get("save_interval_s", 3600.0))

    # Saving after a partial load would drop the unloaded tiles from the pyramid
    try:
        n = collector.load_all()
    except FleetmapError as e:
        log.error("load failed, refusing to continue", extra={"error": str(e)})
        collector.close()
        return 1
    log.info("loaded data", extra={"tiles": n})

    try:
        if once:
            poll_once(collector, feed)
            save(collector)
            return 0

        save(collector)
        last_save = time.monotonic()
        while True:
            poll_once(collector, feed)
            if time.monotonic() - last_save > save_interval:
                save(collector)
                last_save = time.monotonic()
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        log.info("interrupted, flushing tiles")
        return 0
    finally:
        collector.close()


def main() -> None:
    ap = argparse.ArgumentParser(description="Density map collector")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--root", default=None, help="Override storage root")
    ap.add_argument("--once", action="store_true", help="Poll once, save, exit")
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P.get("logging", {}).get("level", "INFO"), force=True)
    if args.root:
        P["storage"]["root"] = args.root
    sys.exit(run(P, once=args.once))


if __name__ == "__main__":
    main()
