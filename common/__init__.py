"""
Shared building blocks: logging, config, error taxonomy and the small value
types (WorldPoint, TileCoord, Observation) used across packages.
"""
