"""GeoPackage tile storage.

This module provides read-only access to a tile pyramid stored in a
GeoPackage (SQLite) tile table:

- TileMatrixSet: extent and CRS shared by all zoom levels
- TileMatrix: per-zoom matrix dimensions and tile pixel size
- TileRecord: one stored tile
- GeoPackageTileStore: sqlite3-backed implementation of TileStore
"""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from geo.bounding_box import BoundingBox
from shared.constants import (
    GPKG_SPATIAL_REF_SYS_TABLE,
    GPKG_TABLE_NAME_PATTERN,
    GPKG_TILE_MATRIX_SET_TABLE,
    GPKG_TILE_MATRIX_TABLE,
)
from shared.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tiles.grid import TileGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileMatrix:
    """One zoom level of the pyramid (a gpkg_tile_matrix row)."""

    zoom_level: int
    matrix_width: int
    matrix_height: int
    tile_width: int
    tile_height: int
    pixel_x_size: float
    pixel_y_size: float


@dataclass(frozen=True)
class TileMatrixSet:
    """Extent and CRS shared by every zoom level of one tile table."""

    table_name: str
    srs_id: int
    crs: str
    bounding_box: BoundingBox


@dataclass(frozen=True)
class TileRecord:
    """A stored tile and its address."""

    column: int
    row: int
    zoom_level: int
    data: bytes


class TileStore(Protocol):
    """Query interface the retriever needs from tile storage."""

    def tile_matrix_set(self) -> TileMatrixSet: ...

    def tile_matrices(self) -> list[TileMatrix]: ...

    def tile_matrix(self, zoom: int) -> TileMatrix | None: ...

    def query_tiles_in_grid(self, grid: TileGrid, zoom: int) -> Iterator[TileRecord]: ...

    def count_tiles_in_grid(self, grid: TileGrid, zoom: int) -> int: ...


class GeoPackageTileStore:
    """Read-only tile storage over one GeoPackage tile table.

    The database is opened with a ``mode=ro`` URI; every sqlite3 error is
    re-raised as StorageError.

    Usage:
        with GeoPackageTileStore('world.gpkg', 'tiles') as store:
            for tile in store.query_tiles_in_grid(TileGrid(0, 0, 1, 1), 1):
                ...
    """

    def __init__(self, path: str | Path, table_name: str) -> None:
        """Open the GeoPackage and check the tile table is registered.

        Args:
            path: GeoPackage file.
            table_name: Tile pyramid user data table.

        Raises:
            StorageError: File cannot be opened, tables are missing or the
                table name is not a plain identifier.
        """
        if not re.match(GPKG_TABLE_NAME_PATTERN, table_name):
            msg = f'Invalid tile table name: {table_name!r}'
            raise StorageError(msg)
        self.path = Path(path)
        self.table_name = table_name
        self._matrices: dict[int, TileMatrix] | None = None
        self._matrix_set: TileMatrixSet | None = None

        if not self.path.is_file():
            msg = f'GeoPackage not found: {self.path}'
            raise StorageError(msg)
        try:
            self._conn = sqlite3.connect(
                f'{self.path.resolve().as_uri()}?mode=ro',
                uri=True,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            msg = f'Cannot open GeoPackage {self.path}: {e}'
            raise StorageError(msg) from e

        try:
            self._check_schema()
        except StorageError:
            self._conn.close()
            raise
        logger.info('GeoPackage %s opened (table %s)', self.path, table_name)

    def __enter__(self) -> GeoPackageTileStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()
        logger.info('GeoPackage %s closed', self.path)

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            msg = f'GeoPackage query failed on {self.path}: {e}'
            raise StorageError(msg) from e

    def _check_schema(self) -> None:
        required = (
            GPKG_SPATIAL_REF_SYS_TABLE,
            GPKG_TILE_MATRIX_SET_TABLE,
            GPKG_TILE_MATRIX_TABLE,
            self.table_name,
        )
        rows = self._execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')"
        ).fetchall()
        existing = {name for (name,) in rows}
        missing = [name for name in required if name not in existing]
        if missing:
            msg = f'GeoPackage {self.path} is missing tables: {", ".join(missing)}'
            raise StorageError(msg)

    def tile_matrix_set(self) -> TileMatrixSet:
        """Tile matrix set of the table, joined with its spatial reference system."""
        if self._matrix_set is None:
            row = self._execute(
                f'SELECT tms.srs_id, tms.min_x, tms.min_y, tms.max_x, tms.max_y, '
                f'srs.organization, srs.organization_coordsys_id '
                f'FROM {GPKG_TILE_MATRIX_SET_TABLE} tms '
                f'LEFT JOIN {GPKG_SPATIAL_REF_SYS_TABLE} srs ON srs.srs_id = tms.srs_id '
                f'WHERE tms.table_name = ?',
                (self.table_name,),
            ).fetchone()
            if row is None:
                msg = f'No tile matrix set registered for table {self.table_name}'
                raise StorageError(msg)
            srs_id, min_x, min_y, max_x, max_y, organization, coordsys_id = row
            if organization and coordsys_id is not None:
                crs = f'{organization.upper()}:{coordsys_id}'
            else:
                crs = f'EPSG:{srs_id}'
            self._matrix_set = TileMatrixSet(
                table_name=self.table_name,
                srs_id=srs_id,
                crs=crs,
                bounding_box=BoundingBox(min_x, min_y, max_x, max_y),
            )
        return self._matrix_set

    def _load_matrices(self) -> dict[int, TileMatrix]:
        if self._matrices is None:
            rows = self._execute(
                f'SELECT zoom_level, matrix_width, matrix_height, tile_width, '
                f'tile_height, pixel_x_size, pixel_y_size '
                f'FROM {GPKG_TILE_MATRIX_TABLE} WHERE table_name = ? '
                f'ORDER BY zoom_level',
                (self.table_name,),
            ).fetchall()
            self._matrices = {row[0]: TileMatrix(*row) for row in rows}
            logger.debug(
                'Table %s has zoom levels %s', self.table_name, list(self._matrices)
            )
        return self._matrices

    def tile_matrices(self) -> list[TileMatrix]:
        """All tile matrices, ordered by zoom level."""
        return list(self._load_matrices().values())

    def tile_matrix(self, zoom: int) -> TileMatrix | None:
        return self._load_matrices().get(zoom)

    def zoom_levels(self) -> list[int]:
        return list(self._load_matrices())

    def query_tiles_in_grid(self, grid: TileGrid, zoom: int) -> Iterator[TileRecord]:
        """Lazily yield the stored tiles of ``grid`` at ``zoom``.

        Absent tiles are simply not yielded. The sequence is single pass.
        """
        sql = (
            f'SELECT tile_column, tile_row, zoom_level, tile_data FROM "{self.table_name}" '
            'WHERE zoom_level = ? AND tile_column BETWEEN ? AND ? '
            'AND tile_row BETWEEN ? AND ? ORDER BY tile_row, tile_column'
        )
        params = (zoom, grid.min_x, grid.max_x, grid.min_y, grid.max_y)
        try:
            for column, row, zoom_level, data in self._conn.execute(sql, params):
                yield TileRecord(column, row, zoom_level, bytes(data))
        except sqlite3.Error as e:
            msg = f'Failed to read tiles of {self.table_name} at zoom {zoom}: {e}'
            raise StorageError(msg) from e

    def count_tiles_in_grid(self, grid: TileGrid, zoom: int) -> int:
        row = self._execute(
            f'SELECT COUNT(*) FROM "{self.table_name}" '
            'WHERE zoom_level = ? AND tile_column BETWEEN ? AND ? '
            'AND tile_row BETWEEN ? AND ?',
            (zoom, grid.min_x, grid.max_x, grid.min_y, grid.max_y),
        ).fetchone()
        return int(row[0])

    def get_tile(self, column: int, row: int, zoom: int) -> TileRecord | None:
        result = self._execute(
            f'SELECT tile_data FROM "{self.table_name}" '
            'WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?',
            (zoom, column, row),
        ).fetchone()
        if result is None:
            return None
        return TileRecord(column, row, zoom, bytes(result[0]))
