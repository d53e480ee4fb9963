"""Imaging package - output raster surface and tile compositing."""

from imaging.composer import RasterSurface, composite, decode_tile

__all__ = [
    'RasterSurface',
    'composite',
    'decode_tile',
]
