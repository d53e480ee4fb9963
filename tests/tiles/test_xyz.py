"""Tests for square world (XYZ) tiling."""

import pytest

from geo.bounding_box import BoundingBox
from geo.projection import Projector
from shared.constants import WEB_MERCATOR_HALF_WORLD_WIDTH, WGS84_CRS
from tiles.grid import TileGrid
from tiles.xyz import (
    WORLD_LENGTH,
    bounding_box_from_tile_grid,
    bounding_box_from_xyz,
    degrees_bounding_box,
    projected_bounding_box,
    tile_grid_for_point,
    tile_grid_from_bounding_box,
    tile_size,
    tile_size_with_zoom,
    tiles_per_side,
    tolerance_distance,
    y_as_opposite_tile_format,
    zoom_from_tile_size,
    zoom_from_tiles_per_side,
    zoom_level,
)

HALF = WEB_MERCATOR_HALF_WORLD_WIDTH


class TestTileSizes:
    """Tests for tile counts and sizes."""

    @pytest.mark.parametrize('zoom', range(0, 25))
    def test_tiles_per_side(self, zoom):
        """2**zoom tiles per side."""
        assert tiles_per_side(zoom) == 2**zoom

    def test_tile_size(self):
        """Tile size divides the world length."""
        assert tile_size(1) == WORLD_LENGTH
        assert tile_size(4, 360.0) == 90.0
        assert tile_size_with_zoom(2, 360.0) == 90.0

    @pytest.mark.parametrize('zoom', [0, 1, 5, 12, 20])
    def test_zoom_from_tile_size(self, zoom):
        """zoom_from_tile_size inverts tile_size_with_zoom."""
        assert zoom_from_tile_size(tile_size_with_zoom(zoom)) == pytest.approx(zoom)

    def test_zoom_from_tiles_per_side(self):
        """Rounded log2 of the tile count."""
        assert zoom_from_tiles_per_side(1) == 0
        assert zoom_from_tiles_per_side(1024) == 10
        assert zoom_from_tiles_per_side(1000) == 10

    def test_tolerance_distance(self):
        """Tolerance is the size of one pixel of the tile."""
        assert tolerance_distance(0, 256, 128) == pytest.approx(WORLD_LENGTH / 256)


class TestBoundingBoxFromXyz:
    """Tests for bounding_box_from_xyz."""

    def test_world_tile(self):
        """Tile 0/0/0 is the whole world."""
        assert bounding_box_from_xyz(0, 0, 0) == BoundingBox(-HALF, -HALF, HALF, HALF)

    def test_zoom_one_quadrants(self):
        """Row 0 is the northern half."""
        box = bounding_box_from_xyz(1, 0, 1)
        assert box.min_x == pytest.approx(0.0)
        assert box.min_y == pytest.approx(0.0)
        assert box.max_x == pytest.approx(HALF)
        assert box.max_y == pytest.approx(HALF)

    def test_x_wraps(self):
        """Column indices wrap around the world."""
        assert bounding_box_from_xyz(4, 1, 2) == bounding_box_from_xyz(0, 1, 2)
        assert bounding_box_from_xyz(-1, 1, 2) == bounding_box_from_xyz(3, 1, 2)

    def test_buffer_expands_and_clamps(self):
        """A pixel buffer grows the box but never past the world."""
        plain = bounding_box_from_xyz(1, 1, 2)
        buffered = bounding_box_from_xyz(1, 1, 2, buffer_px=16, tile_px=256)
        metres = tile_size_with_zoom(2) / 256 * 16
        assert buffered.min_x == pytest.approx(plain.min_x - metres)
        assert buffered.max_y == pytest.approx(plain.max_y + metres)
        corner = bounding_box_from_xyz(0, 0, 2, buffer_px=16, tile_px=256)
        assert corner.min_x == -HALF
        assert corner.max_y == HALF

    def test_custom_world(self):
        """A different half world width scales the box."""
        assert bounding_box_from_xyz(1, 1, 1, 180.0) == BoundingBox(0.0, -180.0, 180.0, 0.0)


class TestTileGridFromBoundingBox:
    """Tests for tile_grid_from_bounding_box."""

    @pytest.mark.parametrize('zoom', [0, 1, 3, 8, 15, 22])
    def test_roundtrip(self, zoom):
        """bounding_box_from_xyz then tile_grid_from_bounding_box recovers (x, y)."""
        count = tiles_per_side(zoom)
        cells = {(0, 0), (count - 1, count - 1), (count // 2, count // 3), (count // 3, count - 1)}
        for x, y in cells:
            box = bounding_box_from_xyz(x, y, zoom)
            assert tile_grid_from_bounding_box(box, zoom) == TileGrid.single(x, y)

    def test_whole_world(self):
        """The world box covers every tile."""
        world = BoundingBox(-HALF, -HALF, HALF, HALF)
        assert tile_grid_from_bounding_box(world, 3) == TileGrid(0, 0, 7, 7)

    def test_clamped_to_world(self):
        """Boxes larger than the world clamp to the matrix."""
        box = BoundingBox(-2 * HALF, -2 * HALF, 2 * HALF, 2 * HALF)
        assert tile_grid_from_bounding_box(box, 1) == TileGrid(0, 0, 1, 1)

    def test_partial_tiles(self):
        """A box inside four tiles at zoom 1 touches all of them."""
        box = BoundingBox(-HALF / 2, -HALF / 2, HALF / 2, HALF / 2)
        assert tile_grid_from_bounding_box(box, 1) == TileGrid(0, 0, 1, 1)

    def test_idempotent(self):
        """Same inputs, same output."""
        box = BoundingBox(-1234567.0, 2345678.0, 3456789.0, 4567890.0)
        assert tile_grid_from_bounding_box(box, 7) == tile_grid_from_bounding_box(box, 7)

    def test_grid_box_roundtrip(self):
        """A tile grid's extent maps back to the same grid."""
        grid = TileGrid(3, 2, 6, 5)
        box = bounding_box_from_tile_grid(grid, 4)
        assert tile_grid_from_bounding_box(box, 4) == grid

    def test_point_on_tile_corner(self):
        """A point on a tile corner belongs to the tile it starts."""
        assert tile_grid_for_point(0.0, 0.0, 1) == TileGrid.single(1, 1)


class TestHelpers:
    """Tests for the remaining XYZ helpers."""

    def test_y_opposite_format(self):
        """XYZ and TMS rows are mirrored."""
        assert y_as_opposite_tile_format(2, 0) == 3
        assert y_as_opposite_tile_format(2, y_as_opposite_tile_format(2, 1)) == 1

    def test_zoom_level(self):
        """A tile's extent has that tile's zoom."""
        assert zoom_level(bounding_box_from_xyz(3, 5, 6)) == 6
        assert zoom_level(BoundingBox(-HALF, -HALF, HALF, HALF)) == 0

    def test_zoom_level_degenerate(self):
        """A zero-area box does not overflow."""
        zoom = zoom_level(BoundingBox(10.0, 10.0, 10.0, 10.0))
        assert zoom == 30

    def test_degrees_bounding_box(self):
        """Degree tiles split 360 x 180 into 2**zoom per side."""
        assert degrees_bounding_box(0, 0, 0) == BoundingBox(-180.0, -90.0, 180.0, 90.0)
        assert degrees_bounding_box(1, 1, 1) == BoundingBox(0.0, -90.0, 180.0, 0.0)

    def test_projected_bounding_box(self):
        """XYZ tile extent reprojected into WGS84."""
        box = projected_bounding_box(0, 0, 0, WGS84_CRS, Projector())
        assert box.min_x == pytest.approx(-180.0)
        assert box.max_x == pytest.approx(180.0)
        assert box.max_y == pytest.approx(85.0511287798066, abs=1e-6)

    def test_tile_grid_for_wgs84_point(self):
        """A WGS84 point is projected before looking up its tile."""
        grid = tile_grid_for_point(-90.0, 45.0, 2, WGS84_CRS, Projector())
        assert grid == TileGrid.single(1, 1)
