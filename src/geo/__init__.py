"""Geo module - bounding boxes, pixel geometry and reprojection."""

from geo.bounding_box import BoundingBox, overlap, union
from geo.geometry import PixelRect
from geo.projection import Projector

__all__ = [
    'BoundingBox',
    'PixelRect',
    'Projector',
    'overlap',
    'union',
]
