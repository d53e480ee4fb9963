from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in pixel space (x, y of the top-left corner, width, height)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def rounded(self) -> tuple[int, int, int, int]:
        """Integer (x, y, width, height), rounding edges rather than sizes."""
        x0 = round(self.x)
        y0 = round(self.y)
        return x0, y0, round(self.right) - x0, round(self.bottom) - y0

    def as_box(self) -> tuple[int, int, int, int]:
        """Integer (left, upper, right, lower) box as Pillow expects it."""
        x0, y0, w, h = self.rounded()
        return x0, y0, x0 + w, y0 + h


def rect_overlap(
    rect: PixelRect,
    surface_width: int,
    surface_height: int,
) -> tuple[int, int, int, int] | None:
    """
    Compute overlap rectangle between a destination rect and the surface.

    Returns (x0, y0, x1, y1) or None if there is no intersection.
    """
    base_x, base_y, w, h = rect.rounded()
    x0 = max(base_x, 0)
    y0 = max(base_y, 0)
    x1 = min(base_x + w, surface_width)
    y1 = min(base_y + h, surface_height)
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1
