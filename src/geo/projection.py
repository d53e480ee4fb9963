"""Coordinate reprojection between tile storage and request CRSs (pyproj)."""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Union

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from geo.bounding_box import BoundingBox, bound_degrees_with_web_mercator_limits
from shared.constants import (
    TRANSFORM_DENSIFY_POINTS,
    WEB_MERCATOR_CRS,
    WGS84_CRS,
)
from shared.exceptions import UnsupportedProjectionError

logger = logging.getLogger(__name__)

CrsLike = Union[str, int, CRS]


def crs_key(crs: CrsLike) -> str:
    """Normalize a CRS reference (``'EPSG:3857'``, ``3857``, CRS) to a string key."""
    if isinstance(crs, CRS):
        return crs.to_string()
    if isinstance(crs, int):
        return f'EPSG:{crs}'
    return str(crs).strip()


@lru_cache(maxsize=64)
def get_crs(key: str) -> CRS:
    """Build (and cache) a pyproj CRS from its string key."""
    try:
        return CRS.from_user_input(key)
    except CRSError as e:
        msg = f'Unsupported CRS: {key}'
        raise UnsupportedProjectionError(msg) from e


@lru_cache(maxsize=64)
def get_transformer(source: str, target: str) -> Transformer:
    """Build (and cache) an always_xy transformer between two CRS keys."""
    try:
        return Transformer.from_crs(get_crs(source), get_crs(target), always_xy=True)
    except (CRSError, ProjError) as e:
        msg = f'No transformation from {source} to {target}'
        raise UnsupportedProjectionError(msg) from e


def same_crs(crs: CrsLike, other: CrsLike) -> bool:
    a, b = crs_key(crs), crs_key(other)
    if a.upper() == b.upper():
        return True
    return get_crs(a) == get_crs(b)


class Projector:
    """
    Reprojection collaborator used by the tile retriever.

    Pure and deterministic: fails only with UnsupportedProjectionError when
    the CRS pair cannot be transformed.
    """

    def __init__(self, densify_pts: int = TRANSFORM_DENSIFY_POINTS):
        self.densify_pts = densify_pts

    def transform_point(
        self,
        x: float,
        y: float,
        source: CrsLike,
        target: CrsLike,
    ) -> tuple[float, float]:
        """
        Transform a single (x, y) point.

        Raises:
            UnsupportedProjectionError: If the pair is unsupported or the
                result is not finite.

        """
        src, dst = crs_key(source), crs_key(target)
        if same_crs(src, dst):
            return (x, y)
        transformer = get_transformer(src, dst)
        try:
            tx, ty = transformer.transform(x, y, errcheck=True)
        except ProjError as e:
            msg = f'Failed to transform point ({x}, {y}) from {src} to {dst}'
            raise UnsupportedProjectionError(msg) from e
        if not (math.isfinite(tx) and math.isfinite(ty)):
            msg = f'Point ({x}, {y}) is outside the domain of {src} -> {dst}'
            raise UnsupportedProjectionError(msg)
        return (tx, ty)

    def transform_bounding_box(
        self,
        box: BoundingBox,
        source: CrsLike,
        target: CrsLike,
    ) -> BoundingBox:
        """
        Transform a bounding box, densifying the edges.

        The result encloses the transformed outline of the box.
        """
        src, dst = crs_key(source), crs_key(target)
        if same_crs(src, dst):
            return box
        transformer = get_transformer(src, dst)
        try:
            bounds = transformer.transform_bounds(
                *box.to_tuple(), densify_pts=self.densify_pts
            )
        except ProjError as e:
            msg = f'Failed to transform {box.to_tuple()} from {src} to {dst}'
            raise UnsupportedProjectionError(msg) from e
        result = BoundingBox.from_tuple(bounds)
        if not all(math.isfinite(v) for v in result.to_tuple()):
            msg = f'Bounding box {box.to_tuple()} is outside the domain of {src} -> {dst}'
            raise UnsupportedProjectionError(msg)
        logger.debug('Transformed %s (%s) -> %s (%s)', box.to_tuple(), src, result.to_tuple(), dst)
        return result

    def to_web_mercator(self, wgs84_box: BoundingBox) -> BoundingBox:
        """Project a WGS84 box to Web Mercator, clamping latitudes first."""
        bounded = bound_degrees_with_web_mercator_limits(wgs84_box)
        min_x, min_y = self.transform_point(
            bounded.min_x, bounded.min_y, WGS84_CRS, WEB_MERCATOR_CRS
        )
        max_x, max_y = self.transform_point(
            bounded.max_x, bounded.max_y, WGS84_CRS, WEB_MERCATOR_CRS
        )
        return BoundingBox(min_x, min_y, max_x, max_y)
