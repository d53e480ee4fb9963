"""Bounding box value type and the arithmetic used by the tile math.

All boxes are expressed in the native units of an implicit CRS: degrees for
geographic systems, metres (or other length units) for projected ones.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, replace

from geo.geometry import PixelRect
from shared.constants import (
    WEB_MERCATOR_HALF_WORLD_WIDTH,
    WEB_MERCATOR_MAX_LAT_RANGE,
    WEB_MERCATOR_MIN_LAT_RANGE,
)
from shared.exceptions import InvalidExtentError

# Divisor used in place of a zero-length span
_MIN_SPAN = sys.float_info.min
_MAX_FINITE = sys.float_info.max


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle (min_x, min_y, max_x, max_y)."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_tuple(cls, bounds: tuple[float, float, float, float]) -> BoundingBox:
        minx, miny, maxx, maxy = bounds
        return cls(float(minx), float(miny), float(maxx), float(maxy))

    @classmethod
    def from_point(cls, x: float, y: float) -> BoundingBox:
        return cls(x, y, x, y)

    def to_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def is_valid(self) -> bool:
        """True if all bounds are finite and not inverted."""
        return all(math.isfinite(v) for v in self.to_tuple()) and (
            self.min_x <= self.max_x and self.min_y <= self.max_y
        )

    def validate(self) -> BoundingBox:
        """
        Return self, or raise InvalidExtentError for a non-finite/inverted box.

        Raises:
            InvalidExtentError: If any bound is NaN/inf or min > max.

        """
        if not self.is_valid():
            msg = f'Invalid bounding box: {self.to_tuple()}'
            raise InvalidExtentError(msg)
        return self

    def shift_x(self, offset: float) -> BoundingBox:
        return replace(self, min_x=self.min_x + offset, max_x=self.max_x + offset)

    def almost_equals(self, other: BoundingBox, tolerance: float) -> bool:
        return all(
            abs(a - b) <= tolerance
            for a, b in zip(self.to_tuple(), other.to_tuple(), strict=True)
        )


def overlap(
    box: BoundingBox,
    box2: BoundingBox,
    allow_empty: bool = False,
    max_longitude: float = 0.0,
) -> BoundingBox | None:
    """
    Get the overlapping bounding box of two boxes.

    When ``max_longitude`` is positive and the longitude ranges are disjoint,
    the second box is first shifted by a whole world width so that boxes
    split by the anti-meridian are compared side by side.

    Args:
        box: First bounding box
        box2: Second bounding box
        allow_empty: Also accept an overlap collapsed to a single point
        max_longitude: Max longitude of the world in the boxes' units
            (180 for degrees, half world width for Web Mercator), 0 to disable

    Returns:
        Overlap bounding box, or None when the boxes do not overlap

    """
    adjustment = 0.0
    if max_longitude > 0:
        if box.min_x > box2.max_x:
            adjustment = max_longitude * 2.0
        elif box.max_x < box2.min_x:
            adjustment = max_longitude * -2.0
    if adjustment != 0.0:
        box2 = box2.shift_x(adjustment)

    x1 = max(box.min_x, box2.min_x)
    y1 = max(box.min_y, box2.min_y)
    x2 = min(box.max_x, box2.max_x)
    y2 = min(box.max_y, box2.max_y)
    if x1 > x2 or y1 > y2:
        return None
    if not allow_empty and x1 == x2 and y1 == y2:
        return None
    return BoundingBox(x1, y1, x2, y2)


def union(box: BoundingBox, box2: BoundingBox) -> BoundingBox:
    """Union of two boxes; no anti-meridian handling."""
    return BoundingBox(
        min(box.min_x, box2.min_x),
        min(box.min_y, box2.min_y),
        max(box.max_x, box2.max_x),
        max(box.max_y, box2.max_y),
    )


def is_point_in_bounding_box(
    x: float,
    y: float,
    box: BoundingBox,
    max_longitude: float = 0.0,
) -> bool:
    """Check whether the point lies within (or on the edge of) the box."""
    point_box = BoundingBox.from_point(x, y)
    return overlap(box, point_box, allow_empty=True, max_longitude=max_longitude) is not None


def _span(value: float) -> float:
    return value if value != 0 else _MIN_SPAN


def _finite(value: float) -> float:
    # Offsets over a degenerate span overflow; keep results finite
    if math.isnan(value):
        return 0.0
    return max(-_MAX_FINITE, min(value, _MAX_FINITE))


def x_pixel(width: float, box: BoundingBox, x: float) -> float:
    """X pixel of the longitude-like value within a ``width`` pixel image of the box."""
    if x == box.min_x:
        return 0.0
    return _finite((x - box.min_x) / _span(box.width) * width)


def longitude_from_pixel(
    width: float,
    box: BoundingBox,
    pixel: float,
    tile_box: BoundingBox | None = None,
) -> float:
    """
    Longitude-like value of the X pixel.

    ``tile_box`` is the extent the pixel grid spans when it differs from the
    box the result is offset from (a sub-tile of a larger request).
    """
    span_box = tile_box or box
    return _finite(pixel / _span(width) * span_box.width) + box.min_x


def y_pixel(height: float, box: BoundingBox, y: float) -> float:
    """Y pixel of the latitude-like value; row 0 is the top (max_y) edge."""
    if y == box.max_y:
        return 0.0
    return _finite((box.max_y - y) / _span(box.height) * height)


def latitude_from_pixel(
    height: float,
    box: BoundingBox,
    pixel: float,
    tile_box: BoundingBox | None = None,
) -> float:
    """Latitude-like value of the Y pixel (see longitude_from_pixel)."""
    span_box = tile_box or box
    return box.max_y - _finite(pixel / _span(height) * span_box.height)


def rounded_rectangle(
    width: int,
    height: int,
    box: BoundingBox,
    section: BoundingBox,
) -> PixelRect | None:
    """
    Pixel rectangle of ``section`` in a width x height image of ``box``.

    Edges are rounded to whole pixels; None if nothing is left after rounding.
    """
    left = round(x_pixel(width, box, section.min_x))
    right = round(x_pixel(width, box, section.max_x))
    top = round(y_pixel(height, box, section.max_y))
    bottom = round(y_pixel(height, box, section.min_y))
    if left < right and top < bottom:
        return PixelRect(left, top, right - left, bottom - top)
    return None


def bound_web_mercator(box: BoundingBox) -> BoundingBox:
    """Clamp a Web Mercator box to the limits of the world."""
    half = WEB_MERCATOR_HALF_WORLD_WIDTH
    return BoundingBox(
        max(box.min_x, -half),
        max(box.min_y, -half),
        min(box.max_x, half),
        min(box.max_y, half),
    )


def bound_degrees_with_web_mercator_limits(box: BoundingBox) -> BoundingBox:
    """Clamp the latitudes of a degrees box into the Web Mercator range."""

    def _clamp(lat: float) -> float:
        return min(max(lat, WEB_MERCATOR_MIN_LAT_RANGE), WEB_MERCATOR_MAX_LAT_RANGE)

    return replace(box, min_y=_clamp(box.min_y), max_y=_clamp(box.max_y))
