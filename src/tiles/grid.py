from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from shared.constants import XY_EPSILON


@dataclass(frozen=True)
class TileGrid:
    """
    Inclusive rectangle of tile indices at one zoom level.

    Columns (x) grow left to right, rows (y) top to bottom, both zero based.
    """

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @classmethod
    def single(cls, x: int, y: int) -> TileGrid:
        return cls(x, y, x, y)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def count(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def __iter__(self) -> Iterator[tuple[int, int]]:
        """Yield (column, row) in row-major order."""
        for y in range(self.min_y, self.max_y + 1):
            for x in range(self.min_x, self.max_x + 1):
                yield (x, y)


def snap(value: float) -> float:
    """Snap a fractional tile index lying within XY_EPSILON of an integer onto it."""
    nearest = round(value)
    if abs(value - nearest) <= XY_EPSILON * max(1.0, abs(nearest)):
        return float(nearest)
    return value


def lower_index(value: float) -> int:
    """Index of the tile a lower (min) edge falls into."""
    return math.floor(snap(value))


def upper_index(value: float) -> int:
    """
    Index of the tile an upper (max) edge falls into.

    An edge lying exactly on a tile boundary belongs to the lower-indexed tile:
    the range only touches the next one.
    """
    return math.ceil(snap(value)) - 1


def clamp_index(index: int, count: int) -> int:
    return max(0, min(index, count - 1))


def index_range(start: float, end: float, size: float, count: int) -> tuple[int, int]:
    """
    Clamped inclusive (first, last) indices of the tiles of ``size`` covering
    the offsets ``start..end`` measured from the grid origin.
    """
    first = clamp_index(lower_index(start / size), count)
    last = clamp_index(upper_index(end / size), count)
    # Zero-length range on a tile edge keeps the tile it starts in
    return first, max(first, last)
