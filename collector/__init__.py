"""
Collector: boundary between the position feed and the density core

Provides:
- Collector: routing-key -> SpatialMap registry with ingest/load_all/save_all
- FeedClient: HTTP client for the JSON position feed
- service: polling CLI (python -m collector.service)
"""
from .collector import Collector
from .feed import FeedClient, parse_feed

__all__ = ["Collector", "FeedClient", "parse_feed"]
