"""
Error taxonomy shared by the density core, the collector and the viewer.

Every error raised on purpose by this project derives from FleetmapError so the
polling loop can log-and-continue on anything it knows about while still
letting programming errors surface.
"""
from __future__ import annotations


class FleetmapError(Exception):
    """Base class for all project errors."""


class RasterCodecError(FleetmapError):
    """A raster could not be decoded/encoded, or had unexpected dimensions."""


class StorageIOError(FleetmapError):
    """Opening, reading, writing or renaming a file failed."""


class CoordinateParseError(FleetmapError):
    """A tile coordinate path segment on disk is not an integer."""


class MissingFieldError(FleetmapError):
    """Feed input lacks a field needed to route an observation."""
