"""
Tile math for an arbitrary tile matrix.

A matrix is described by the total bounding box of its tile matrix set and
its width and height in tiles. Column 0 starts at the west edge of the box,
row 0 at the north edge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from geo.bounding_box import BoundingBox, x_pixel, y_pixel
from geo.geometry import PixelRect
from tiles.grid import TileGrid, lower_index, upper_index

if TYPE_CHECKING:
    from tiles.store import TileMatrix


@dataclass(frozen=True)
class PlacementRect:
    """Where a fetched tile goes: source rect inside the tile, destination in the output."""

    source: PixelRect
    destination: PixelRect


def tile_column(total_box: BoundingBox, matrix_width: int, x: float) -> int:
    """
    Tile column of the x coordinate.

    Returns:
        Column index, -1 if before the matrix, ``matrix_width`` if after it

    """
    if x < total_box.min_x:
        return -1
    if x >= total_box.max_x:
        return matrix_width
    tile_width = total_box.width / matrix_width
    return min(lower_index((x - total_box.min_x) / tile_width), matrix_width - 1)


def tile_row(total_box: BoundingBox, matrix_height: int, y: float) -> int:
    """
    Tile row of the y coordinate, counted down from the north edge.

    Returns:
        Row index, -1 if above the matrix, ``matrix_height`` if below it

    """
    if y >= total_box.max_y:
        return -1
    if y < total_box.min_y:
        return matrix_height
    tile_height = total_box.height / matrix_height
    return min(lower_index((total_box.max_y - y) / tile_height), matrix_height - 1)


def _last_column(total_box: BoundingBox, matrix_width: int, x: float) -> int:
    # Column of an east edge: an edge on a tile boundary stays in the western tile
    if x <= total_box.min_x:
        return -1
    if x >= total_box.max_x:
        return matrix_width
    tile_width = total_box.width / matrix_width
    return upper_index((x - total_box.min_x) / tile_width)


def _last_row(total_box: BoundingBox, matrix_height: int, y: float) -> int:
    # Row of a south edge: an edge on a tile boundary stays in the northern tile
    if y >= total_box.max_y:
        return -1
    if y <= total_box.min_y:
        return matrix_height
    tile_height = total_box.height / matrix_height
    return upper_index((total_box.max_y - y) / tile_height)


def tile_grid(
    total_box: BoundingBox,
    matrix_width: int,
    matrix_height: int,
    box: BoundingBox,
) -> TileGrid | None:
    """
    Tile grid of the matrix covering ``box``.

    Returns:
        Grid clamped to the matrix, or None when the box misses the matrix

    """
    min_column = tile_column(total_box, matrix_width, box.min_x)
    max_column = _last_column(total_box, matrix_width, box.max_x)
    if min_column >= matrix_width or max_column < 0:
        return None

    min_row = tile_row(total_box, matrix_height, box.max_y)
    max_row = _last_row(total_box, matrix_height, box.min_y)
    if min_row >= matrix_height or max_row < 0:
        return None

    min_column = max(min_column, 0)
    min_row = max(min_row, 0)
    max_column = max(min(max_column, matrix_width - 1), min_column)
    max_row = max(min(max_row, matrix_height - 1), min_row)
    return TileGrid(min_column, min_row, max_column, max_row)


def bounding_box_for_tile_grid(
    total_box: BoundingBox,
    matrix_width: int,
    matrix_height: int,
    grid: TileGrid,
) -> BoundingBox:
    """Extent covered by the tiles of ``grid``."""
    tile_width = total_box.width / matrix_width
    tile_height = total_box.height / matrix_height
    return BoundingBox(
        total_box.min_x + tile_width * grid.min_x,
        total_box.max_y - tile_height * (grid.max_y + 1),
        total_box.min_x + tile_width * (grid.max_x + 1),
        total_box.max_y - tile_height * grid.min_y,
    )


def bounding_box_for_tile(
    total_box: BoundingBox,
    matrix: TileMatrix,
    column: int,
    row: int,
) -> BoundingBox:
    return bounding_box_for_tile_grid(
        total_box,
        matrix.matrix_width,
        matrix.matrix_height,
        TileGrid.single(column, row),
    )


def pixel_x_size(box: BoundingBox, matrix_width: int, tile_width: int) -> float:
    return box.width / matrix_width / tile_width


def pixel_y_size(box: BoundingBox, matrix_height: int, tile_height: int) -> float:
    return box.height / matrix_height / tile_height


def placement_for_tile(
    tile_box: BoundingBox,
    tile_width: int,
    tile_height: int,
    request_box: BoundingBox,
    output_width: int,
    output_height: int,
) -> PlacementRect:
    """
    Placement of a whole stored tile inside the output raster.

    The destination is the tile extent mapped proportionally into the
    requested extent; parts falling outside the raster are clipped on draw.
    """
    left = x_pixel(output_width, request_box, tile_box.min_x)
    right = x_pixel(output_width, request_box, tile_box.max_x)
    top = y_pixel(output_height, request_box, tile_box.max_y)
    bottom = y_pixel(output_height, request_box, tile_box.min_y)
    return PlacementRect(
        source=PixelRect(0, 0, tile_width, tile_height),
        destination=PixelRect(left, top, right - left, bottom - top),
    )
