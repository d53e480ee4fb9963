"""
Asymmetric WGS84 world tiling.

The longitude side has twice as many tiles as the latitude side, so every
tile covers a square of degrees: 2 x 1 tiles at zoom 0, 4 x 2 at zoom 1 and
so on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from geo.bounding_box import BoundingBox
from shared.constants import (
    WGS84_CRS,
    WGS84_HALF_WORLD_LAT_HEIGHT,
    WGS84_HALF_WORLD_LON_WIDTH,
)
from tiles.grid import TileGrid, index_range

if TYPE_CHECKING:
    from geo.projection import CrsLike, Projector


def tiles_per_wgs84_lat_side(zoom: int) -> int:
    return 2**zoom


def tiles_per_wgs84_lon_side(zoom: int) -> int:
    return 2 * tiles_per_wgs84_lat_side(zoom)


def tile_size_lat(tiles_per_lat_side: int) -> float:
    return 2 * WGS84_HALF_WORLD_LAT_HEIGHT / tiles_per_lat_side


def tile_size_lon(tiles_per_lon_side: int) -> float:
    return 2 * WGS84_HALF_WORLD_LON_WIDTH / tiles_per_lon_side


def wgs84_bounding_box(grid: TileGrid, zoom: int) -> BoundingBox:
    """Extent in degrees of the tile grid at the zoom level."""
    size_lat = tile_size_lat(tiles_per_wgs84_lat_side(zoom))
    size_lon = tile_size_lon(tiles_per_wgs84_lon_side(zoom))
    return BoundingBox(
        -WGS84_HALF_WORLD_LON_WIDTH + grid.min_x * size_lon,
        WGS84_HALF_WORLD_LAT_HEIGHT - (grid.max_y + 1) * size_lat,
        -WGS84_HALF_WORLD_LON_WIDTH + (grid.max_x + 1) * size_lon,
        WGS84_HALF_WORLD_LAT_HEIGHT - grid.min_y * size_lat,
    )


def wgs84_bounding_box_from_xyz(x: int, y: int, zoom: int) -> BoundingBox:
    return wgs84_bounding_box(TileGrid.single(x, y), zoom)


def tile_grid_wgs84(box: BoundingBox, zoom: int) -> TileGrid:
    """
    Tile grid covering a WGS84 box.

    An upper bound landing exactly on a tile edge is excluded from the range,
    so a coordinate on an edge belongs to exactly one tile.
    """
    tiles_lat = tiles_per_wgs84_lat_side(zoom)
    tiles_lon = tiles_per_wgs84_lon_side(zoom)
    min_x, max_x = index_range(
        box.min_x + WGS84_HALF_WORLD_LON_WIDTH,
        box.max_x + WGS84_HALF_WORLD_LON_WIDTH,
        tile_size_lon(tiles_lon),
        tiles_lon,
    )
    min_y, max_y = index_range(
        WGS84_HALF_WORLD_LAT_HEIGHT - box.max_y,
        WGS84_HALF_WORLD_LAT_HEIGHT - box.min_y,
        tile_size_lat(tiles_lat),
        tiles_lat,
    )
    return TileGrid(min_x, min_y, max_x, max_y)


def tile_grid_wgs84_for_point(
    x: float,
    y: float,
    zoom: int,
    crs: CrsLike = WGS84_CRS,
    projector: Projector | None = None,
) -> TileGrid:
    if projector is not None:
        x, y = projector.transform_point(x, y, crs, WGS84_CRS)
    return tile_grid_wgs84(BoundingBox.from_point(x, y), zoom)
