"""Pytest configuration and fixtures for GeoPackage tile retrieval tests."""

import sqlite3
import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

HALF_WORLD = 20037508.342789244


def tile_color(zoom, column, row):
    """Solid RGBA colour of the generated tile (zoom, column, row)."""
    return ((column * 60 + 30) % 256, (row * 60 + 30) % 256, (zoom * 40 + 20) % 256, 255)


def png_tile(color, size=256):
    """Encode a solid colour PNG tile."""
    buf = BytesIO()
    Image.new('RGBA', (size, size), color).save(buf, format='PNG')
    return buf.getvalue()


def write_geopackage(
    path,
    *,
    table='tiles',
    srs_id=3857,
    organization='EPSG',
    bounds=(-HALF_WORLD, -HALF_WORLD, HALF_WORLD, HALF_WORLD),
    zooms=(0, 1, 2),
    matrix_size=lambda z: (2**z, 2**z),
    tile_size=256,
    skip=(),
    extra_tiles=(),
):
    """
    Write a GeoPackage tile pyramid with solid colour PNG tiles.

    ``skip`` lists (zoom, column, row) cells left empty; ``extra_tiles`` lists
    (zoom, column, row, data) rows inserted as is.
    """
    min_x, min_y, max_x, max_y = bounds
    conn = sqlite3.connect(str(path))
    conn.executescript(f'''
        CREATE TABLE gpkg_spatial_ref_sys (
            srs_name TEXT NOT NULL,
            srs_id INTEGER PRIMARY KEY,
            organization TEXT NOT NULL,
            organization_coordsys_id INTEGER NOT NULL,
            definition TEXT NOT NULL,
            description TEXT
        );
        CREATE TABLE gpkg_tile_matrix_set (
            table_name TEXT NOT NULL PRIMARY KEY,
            srs_id INTEGER NOT NULL,
            min_x DOUBLE NOT NULL,
            min_y DOUBLE NOT NULL,
            max_x DOUBLE NOT NULL,
            max_y DOUBLE NOT NULL
        );
        CREATE TABLE gpkg_tile_matrix (
            table_name TEXT NOT NULL,
            zoom_level INTEGER NOT NULL,
            matrix_width INTEGER NOT NULL,
            matrix_height INTEGER NOT NULL,
            tile_width INTEGER NOT NULL,
            tile_height INTEGER NOT NULL,
            pixel_x_size DOUBLE NOT NULL,
            pixel_y_size DOUBLE NOT NULL,
            PRIMARY KEY (table_name, zoom_level)
        );
        CREATE TABLE "{table}" (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            zoom_level INTEGER NOT NULL,
            tile_column INTEGER NOT NULL,
            tile_row INTEGER NOT NULL,
            tile_data BLOB NOT NULL,
            UNIQUE (zoom_level, tile_column, tile_row)
        );
    ''')
    conn.execute(
        'INSERT INTO gpkg_spatial_ref_sys VALUES (?, ?, ?, ?, ?, ?)',
        (f'{organization}:{srs_id}', srs_id, organization, srs_id, 'undefined', None),
    )
    conn.execute(
        'INSERT INTO gpkg_tile_matrix_set VALUES (?, ?, ?, ?, ?, ?)',
        (table, srs_id, min_x, min_y, max_x, max_y),
    )
    for zoom in zooms:
        width, height = matrix_size(zoom)
        conn.execute(
            'INSERT INTO gpkg_tile_matrix VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
            (
                table,
                zoom,
                width,
                height,
                tile_size,
                tile_size,
                (max_x - min_x) / width / tile_size,
                (max_y - min_y) / height / tile_size,
            ),
        )
        for row in range(height):
            for column in range(width):
                if (zoom, column, row) in skip:
                    continue
                conn.execute(
                    f'INSERT INTO "{table}" (zoom_level, tile_column, tile_row, tile_data) '
                    'VALUES (?, ?, ?, ?)',
                    (zoom, column, row, png_tile(tile_color(zoom, column, row), tile_size)),
                )
    for zoom, column, row, data in extra_tiles:
        conn.execute(
            f'INSERT INTO "{table}" (zoom_level, tile_column, tile_row, tile_data) '
            'VALUES (?, ?, ?, ?)',
            (zoom, column, row, data),
        )
    conn.commit()
    conn.close()
    return Path(path)


@pytest.fixture
def gpkg_factory(tmp_path):
    """Build GeoPackages inside the test's temporary directory."""
    counter = iter(range(1000))

    def _make(**kwargs):
        return write_geopackage(tmp_path / f'pyramid_{next(counter)}.gpkg', **kwargs)

    return _make


@pytest.fixture
def mercator_gpkg(gpkg_factory):
    """Web Mercator world pyramid, zoom levels 0-2, every tile stored."""
    return gpkg_factory()


@pytest.fixture
def wgs84_gpkg(gpkg_factory):
    """WGS84 world pyramid (2:1 matrices), zoom levels 0-1."""
    return gpkg_factory(
        srs_id=4326,
        bounds=(-180.0, -90.0, 180.0, 90.0),
        zooms=(0, 1),
        matrix_size=lambda z: (2 * 2**z, 2**z),
    )


@pytest.fixture
def colors():
    """Colour of a generated tile, by (zoom, column, row)."""
    return tile_color
