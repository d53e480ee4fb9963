"""Zoom level remapping and stored zoom selection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shared.constants import ZOOM_TOLERANCE_RATIO
from tiles.grid import TileGrid

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def remap_tile_grid(grid: TileGrid, from_zoom: int, to_zoom: int) -> TileGrid:
    """
    Scale a tile grid to another zoom level.

    Every zoom step doubles the tiles per axis. Zooming in expands to all
    nested finer tiles; zooming out keeps every coarser tile containing part
    of the grid, so the result never covers less than the input.
    """
    delta = to_zoom - from_zoom
    if delta == 0:
        return grid
    if delta > 0:
        factor = 1 << delta
        return TileGrid(
            grid.min_x * factor,
            grid.min_y * factor,
            (grid.max_x + 1) * factor - 1,
            (grid.max_y + 1) * factor - 1,
        )
    factor = 1 << -delta
    return TileGrid(
        grid.min_x // factor,
        grid.min_y // factor,
        -(-(grid.max_x + 1) // factor) - 1,
        -(-(grid.max_y + 1) // factor) - 1,
    )


def select_zoom_level(
    requested_width: float,
    tile_widths: Mapping[int, float],
    tolerance: float = ZOOM_TOLERANCE_RATIO,
) -> int | None:
    """
    Pick the stored zoom level matching a requested tile width.

    A zoom qualifies when its stored tile width is not larger than the
    requested width, or differs from it by at most ``tolerance`` of the
    stored width. The coarsest qualifying zoom wins.

    Args:
        requested_width: Requested tile width in storage CRS units
        tile_widths: Stored tile width per zoom level
        tolerance: Relative tolerance band

    Returns:
        Zoom level, or None if no stored zoom qualifies

    """
    selected = None
    # Fine to coarse; the last match is the coarsest
    for zoom in sorted(tile_widths, reverse=True):
        width = tile_widths[zoom]
        if width <= requested_width or abs(requested_width - width) <= tolerance * width:
            selected = zoom
    logger.debug(
        'Zoom for requested tile width %.6f: %s', requested_width, selected
    )
    return selected
