"""
fleetmap test suite

Structure:
- unit/: Unit tests for individual components (gamma codec, tiles, images, maps, collector, feed)
- integration/: End-to-end pyramid generation and the viewer API
"""
