"""
Квадратная мировая разбивка (XYZ, Web Mercator): 2**zoom тайлов на сторону.

Ось X растёт на восток от -half_world_width, ось Y (номер строки) растёт
на юг от +half_world_width.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from geo.bounding_box import BoundingBox
from shared.constants import (
    MAX_ZOOM_LEVEL,
    TILE_SIZE,
    WEB_MERCATOR_CRS,
    WEB_MERCATOR_HALF_WORLD_WIDTH,
    WGS84_HALF_WORLD_LAT_HEIGHT,
    WGS84_HALF_WORLD_LON_WIDTH,
)
from tiles.grid import TileGrid, index_range

if TYPE_CHECKING:
    from geo.projection import CrsLike, Projector

WORLD_LENGTH = 2 * WEB_MERCATOR_HALF_WORLD_WIDTH


def tiles_per_side(zoom: int) -> int:
    return 2**zoom


def tile_size(tiles_per_side: int, world_length: float = WORLD_LENGTH) -> float:
    return world_length / tiles_per_side


def tile_size_with_zoom(zoom: int, world_length: float = WORLD_LENGTH) -> float:
    return tile_size(tiles_per_side(zoom), world_length)


def zoom_from_tile_size(size: float, world_length: float = WORLD_LENGTH) -> float:
    """Дробный уровень зума, на котором тайл имеет сторону ``size``."""
    return math.log2(world_length / size)


def zoom_from_tiles_per_side(count: int) -> int:
    return round(math.log2(count))


def bounding_box_from_xyz(
    x: int,
    y: int,
    zoom: int,
    half_world_width: float = WEB_MERCATOR_HALF_WORLD_WIDTH,
    *,
    buffer_px: int = 0,
    tile_px: int = TILE_SIZE,
) -> BoundingBox:
    """
    Охват тайла (x, y, zoom).

    X заворачивается по модулю числа тайлов на сторону. Необязательный буфер
    ``buffer_px`` (в пикселях тайла размером ``tile_px``) расширяет охват со
    всех сторон; результат обрезается границами мира.
    """
    count = tiles_per_side(zoom)
    size = tile_size(count, 2 * half_world_width)
    x %= count

    buffer = size / tile_px * buffer_px if buffer_px and tile_px else 0.0

    min_x = -half_world_width + x * size - buffer
    max_x = -half_world_width + (x + 1) * size + buffer
    min_y = half_world_width - (y + 1) * size - buffer
    max_y = half_world_width - y * size + buffer

    return BoundingBox(
        max(min_x, -half_world_width),
        max(min_y, -half_world_width),
        min(max_x, half_world_width),
        min(max_y, half_world_width),
    )


def bounding_box_from_tile_grid(
    grid: TileGrid,
    zoom: int,
    half_world_width: float = WEB_MERCATOR_HALF_WORLD_WIDTH,
) -> BoundingBox:
    """Охват прямоугольника тайлов ``grid`` на уровне ``zoom``."""
    size = tile_size_with_zoom(zoom, 2 * half_world_width)
    return BoundingBox(
        -half_world_width + grid.min_x * size,
        half_world_width - (grid.max_y + 1) * size,
        -half_world_width + (grid.max_x + 1) * size,
        half_world_width - grid.min_y * size,
    )


def tile_grid_from_bounding_box(
    box: BoundingBox,
    zoom: int,
    half_world_width: float = WEB_MERCATOR_HALF_WORLD_WIDTH,
) -> TileGrid:
    """
    Прямоугольник тайлов, покрывающий ``box``.

    Верхняя граница, попавшая точно на край тайла, относится к тайлу с
    меньшим индексом: соседний тайл лишь касается охвата.
    """
    count = tiles_per_side(zoom)
    size = tile_size(count, 2 * half_world_width)
    min_x, max_x = index_range(
        box.min_x + half_world_width, box.max_x + half_world_width, size, count
    )
    min_y, max_y = index_range(
        half_world_width - box.max_y, half_world_width - box.min_y, size, count
    )
    return TileGrid(min_x, min_y, max_x, max_y)


def tile_grid_for_point(
    x: float,
    y: float,
    zoom: int,
    crs: CrsLike = WEB_MERCATOR_CRS,
    projector: Projector | None = None,
) -> TileGrid:
    """Тайл, содержащий точку; точка в ``crs`` сначала переводится в Web Mercator."""
    if projector is not None:
        x, y = projector.transform_point(x, y, crs, WEB_MERCATOR_CRS)
    return tile_grid_from_bounding_box(BoundingBox.from_point(x, y), zoom)


def projected_bounding_box(
    x: int,
    y: int,
    zoom: int,
    crs: CrsLike,
    projector: Projector,
) -> BoundingBox:
    """Охват XYZ-тайла, перепроецированный в ``crs``."""
    box = bounding_box_from_xyz(x, y, zoom)
    return projector.transform_bounding_box(box, WEB_MERCATOR_CRS, crs)


def zoom_level(web_mercator_box: BoundingBox) -> int:
    """Уровень зума, на котором охват ближе всего к одному тайлу."""
    max_tiles = float(tiles_per_side(MAX_ZOOM_LEVEL))
    width = web_mercator_box.width
    height = web_mercator_box.height
    width_tiles = round(min(WORLD_LENGTH / width, max_tiles)) if width > 0 else max_tiles
    height_tiles = round(min(WORLD_LENGTH / height, max_tiles)) if height > 0 else max_tiles
    count = max(min(width_tiles, height_tiles), 1)
    return zoom_from_tiles_per_side(count)


def tile_width_degrees(tiles_per_side: int) -> float:
    return 2 * WGS84_HALF_WORLD_LON_WIDTH / tiles_per_side


def tile_height_degrees(tiles_per_side: int) -> float:
    return 2 * WGS84_HALF_WORLD_LAT_HEIGHT / tiles_per_side


def degrees_bounding_box(x: int, y: int, zoom: int) -> BoundingBox:
    """Охват тайла в градусах при квадратной разбивке мира."""
    count = tiles_per_side(zoom)
    width = tile_width_degrees(count)
    height = tile_height_degrees(count)
    min_lon = -WGS84_HALF_WORLD_LON_WIDTH + x * width
    max_lat = WGS84_HALF_WORLD_LAT_HEIGHT - y * height
    return BoundingBox(min_lon, max_lat - height, min_lon + width, max_lat)


def y_as_opposite_tile_format(zoom: int, y: int) -> int:
    """Перевод номера строки между схемами XYZ и TMS (в обе стороны)."""
    return tiles_per_side(zoom) - y - 1


def tolerance_distance(zoom: int, pixel_width: int, pixel_height: int) -> float:
    """Размер одного пикселя тайла (в метрах) по большей из сторон."""
    return tile_size_with_zoom(zoom) / max(pixel_width, pixel_height)
