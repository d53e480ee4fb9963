"""Tile addressing and storage.

This module provides:
- TileGrid: integer tile index rectangle
- xyz / wgs84 / matrix: tile math for the square, asymmetric and arbitrary schemes
- GeoPackageTileStore: read-only GeoPackage tile storage
- stream_decoded_tiles: concurrent tile decoding stream
"""

from tiles.fetcher import stream_decoded_tiles
from tiles.grid import TileGrid
from tiles.store import GeoPackageTileStore, TileMatrix, TileMatrixSet, TileRecord

__all__ = [
    'GeoPackageTileStore',
    'TileGrid',
    'TileMatrix',
    'TileMatrixSet',
    'TileRecord',
    'stream_decoded_tiles',
]
