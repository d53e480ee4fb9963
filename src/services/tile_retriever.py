"""Tile retriever - serves images for arbitrary extents out of a tile pyramid."""

from __future__ import annotations

import contextlib
import itertools
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING

from PIL import Image, UnidentifiedImageError

from domain.models import RetrieverSettings
from geo.bounding_box import BoundingBox, overlap
from geo.projection import Projector, same_crs
from imaging.composer import RasterSurface, composite, decode_tile
from shared.constants import WEB_MERCATOR_CRS, WGS84_CRS
from tiles.fetcher import stream_decoded_tiles
from tiles.matrix import bounding_box_for_tile, placement_for_tile, tile_grid
from tiles.xyz import bounding_box_from_xyz
from tiles.zoom import select_zoom_level

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from geo.projection import CrsLike
    from tiles.grid import TileGrid
    from tiles.matrix import PlacementRect
    from tiles.store import TileMatrix, TileMatrixSet, TileRecord, TileStore

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Values derived once per request and reused by its steps."""

    matrix_set: TileMatrixSet | None = None
    tile_widths: dict[int, float] | None = None
    web_mercator_box: BoundingBox | None = None


@dataclass(frozen=True)
class TileResult:
    """Outcome of one request; ``data`` is None for an empty result."""

    data: bytes | None
    format: str
    zoom_level: int | None = None
    tile_grid: TileGrid | None = None
    tiles_drawn: int = 0
    passthrough: bool = False

    @property
    def is_empty(self) -> bool:
        return self.data is None


@dataclass(frozen=True)
class _RequestPlan:
    zoom: int
    matrix: TileMatrix
    matrix_set: TileMatrixSet
    storage_box: BoundingBox
    grid: TileGrid
    width: int
    height: int


class TileRetriever:
    """
    Builds output images for arbitrary extents from one tile table.

    Per request: validate the extent, move it into the storage CRS, pick
    the stored zoom, compute the covering tile grid, fetch the stored tiles
    and composite them onto a fresh surface.
    """

    def __init__(
        self,
        store: TileStore,
        width: int | None = None,
        height: int | None = None,
        *,
        settings: RetrieverSettings | None = None,
        projector: Projector | None = None,
        surface_factory: Callable[[int, int], RasterSurface] = RasterSurface.create,
    ):
        """
        Initialize retriever over a tile store.

        Args:
            store: Tile storage collaborator
            width: Output width in pixels, defaults to the stored tile width
            height: Output height in pixels, defaults to the stored tile height
            settings: Retrieval settings
            projector: Reprojection collaborator
            surface_factory: Creates the output surface of a request

        """
        self.store = store
        self.settings = settings or RetrieverSettings()
        self.width = width if width is not None else self.settings.width
        self.height = height if height is not None else self.settings.height
        self.projector = projector or Projector()
        self.surface_factory = surface_factory

    # --- Derived tile set values

    def _matrix_set(self, context: RequestContext) -> TileMatrixSet:
        if context.matrix_set is None:
            context.matrix_set = self.store.tile_matrix_set()
        return context.matrix_set

    def tile_widths(self, context: RequestContext | None = None) -> dict[int, float]:
        """Stored tile width per zoom level, in storage CRS units."""
        context = context or RequestContext()
        if context.tile_widths is None:
            total_width = self._matrix_set(context).bounding_box.width
            context.tile_widths = {
                matrix.zoom_level: total_width / matrix.matrix_width
                for matrix in self.store.tile_matrices()
            }
        return context.tile_widths

    def web_mercator_bounding_box(
        self,
        context: RequestContext | None = None,
    ) -> BoundingBox:
        """
        Extent of the tile set in Web Mercator.

        Latitudes of an EPSG:4326 tile set are limited to
        ``settings.wgs84_latitude_limit`` before projecting.
        """
        context = context or RequestContext()
        if context.web_mercator_box is None:
            matrix_set = self._matrix_set(context)
            box = matrix_set.bounding_box
            if same_crs(matrix_set.crs, WGS84_CRS):
                limit = self.settings.wgs84_latitude_limit
                box = BoundingBox(
                    box.min_x,
                    max(box.min_y, -limit),
                    box.max_x,
                    min(box.max_y, limit),
                )
            context.web_mercator_box = self.projector.transform_bounding_box(
                box, matrix_set.crs, WEB_MERCATOR_CRS
            )
        return context.web_mercator_box

    def determine_zoom_level(
        self,
        box: BoundingBox,
        crs: CrsLike = WEB_MERCATOR_CRS,
        context: RequestContext | None = None,
    ) -> int | None:
        """
        Stored zoom level matching the width of ``box``.

        The south-west and north-east corners are moved into the storage CRS
        and their x distance is compared with the stored tile widths.
        """
        box.validate()
        context = context or RequestContext()
        storage_crs = self._matrix_set(context).crs
        sw_x, _ = self.projector.transform_point(box.min_x, box.min_y, crs, storage_crs)
        ne_x, _ = self.projector.transform_point(box.max_x, box.max_y, crs, storage_crs)
        return select_zoom_level(
            ne_x - sw_x, self.tile_widths(context), self.settings.zoom_tolerance
        )

    # --- Entry points

    def get_tile(self, x: int, y: int, zoom: int) -> TileResult:
        """Image for the XYZ (Web Mercator) tile x, y at ``zoom``."""
        context = RequestContext()
        box = bounding_box_from_xyz(x, y, zoom)
        if overlap(self.web_mercator_bounding_box(context), box) is None:
            logger.debug('XYZ tile %d/%d/%d is outside the tile set', zoom, x, y)
            return self._empty()
        gp_zoom = self.determine_zoom_level(box, WEB_MERCATOR_CRS, context)
        return self.get_tile_with_bounds(box, gp_zoom, WEB_MERCATOR_CRS, context)

    def has_tile(self, x: int, y: int, zoom: int) -> bool:
        """Whether any stored tile covers the XYZ tile; nothing is decoded."""
        context = RequestContext()
        box = bounding_box_from_xyz(x, y, zoom)
        gp_zoom = self.determine_zoom_level(box, WEB_MERCATOR_CRS, context)
        plan = self._plan(box, gp_zoom, WEB_MERCATOR_CRS, context)
        if plan is None:
            return False
        return self.store.count_tiles_in_grid(plan.grid, plan.zoom) > 0

    def get_tile_with_wgs84_bounds(self, wgs84_box: BoundingBox) -> TileResult:
        """Image for a WGS84 extent, served in Web Mercator at the matching zoom."""
        context = RequestContext()
        box = self.projector.to_web_mercator(wgs84_box.validate())
        gp_zoom = self.determine_zoom_level(box, WEB_MERCATOR_CRS, context)
        return self.get_tile_with_bounds(box, gp_zoom, WEB_MERCATOR_CRS, context)

    def get_tile_with_wgs84_bounds_in_projection(
        self,
        wgs84_box: BoundingBox,
        zoom: int,
        crs: CrsLike,
    ) -> TileResult:
        """Image for a WGS84 extent projected to ``crs``, at a given stored zoom."""
        box = self.projector.transform_bounding_box(wgs84_box.validate(), WGS84_CRS, crs)
        return self.get_tile_with_bounds(box, zoom, crs)

    def get_tile_with_bounds(
        self,
        box: BoundingBox,
        zoom: int | None,
        crs: CrsLike = WEB_MERCATOR_CRS,
        context: RequestContext | None = None,
    ) -> TileResult:
        """
        Image covering ``box`` (in ``crs``) from the stored zoom level ``zoom``.

        Returns:
            TileResult; empty when the zoom is unknown or nothing is stored
            for the extent

        Raises:
            InvalidExtentError: Box is not finite or inverted
            UnsupportedProjectionError: Box cannot be moved into the storage CRS
            StorageError: Tiles cannot be read

        """
        plan = self._plan(box, zoom, crs, context or RequestContext())
        if plan is None:
            return self._empty(zoom)

        records = iter(self.store.query_tiles_in_grid(plan.grid, plan.zoom))
        passthrough, records = self._passthrough(plan, records)
        if passthrough is not None:
            return passthrough

        surface = self.surface_factory(plan.width, plan.height)
        try:
            drawn = composite(surface, self._draws(plan, records))
            if drawn == 0:
                return self._empty(plan.zoom, plan.grid)
            data = surface.encode(self.settings.output_format)
        finally:
            surface.close()
        return self._result(plan, data, drawn)

    async def aget_tile_with_bounds(
        self,
        box: BoundingBox,
        zoom: int | None,
        crs: CrsLike = WEB_MERCATOR_CRS,
        context: RequestContext | None = None,
    ) -> TileResult:
        """
        Async variant of get_tile_with_bounds.

        Tiles are decoded concurrently in worker threads and drawn one at a
        time in decode completion order.
        """
        plan = self._plan(box, zoom, crs, context or RequestContext())
        if plan is None:
            return self._empty(zoom)

        records = iter(self.store.query_tiles_in_grid(plan.grid, plan.zoom))
        passthrough, records = self._passthrough(plan, records)
        if passthrough is not None:
            return passthrough

        surface = self.surface_factory(plan.width, plan.height)
        try:
            drawn = 0
            stream = stream_decoded_tiles(
                records,
                self._decode,
                concurrency=self.settings.fetch_concurrency,
                discard=_close_tile,
            )
            async with contextlib.aclosing(stream) as tiles:
                async for record, tile in tiles:
                    if tile is None:
                        continue
                    try:
                        placement = self._placement(plan, record)
                        drawn += surface.draw_image(
                            tile, placement.destination, placement.source
                        )
                    finally:
                        tile.close()
            if drawn == 0:
                return self._empty(plan.zoom, plan.grid)
            data = surface.encode(self.settings.output_format)
        finally:
            surface.close()
        return self._result(plan, data, drawn)

    # --- Request steps

    def _plan(
        self,
        box: BoundingBox,
        zoom: int | None,
        crs: CrsLike,
        context: RequestContext,
    ) -> _RequestPlan | None:
        box.validate()
        if zoom is None:
            logger.debug('No stored zoom level matches %s', box.to_tuple())
            return None
        matrix = self.store.tile_matrix(zoom)
        if matrix is None:
            logger.debug('No tile matrix for zoom %d', zoom)
            return None

        matrix_set = self._matrix_set(context)
        storage_box = self.projector.transform_bounding_box(
            box, crs, matrix_set.crs
        ).validate()
        if storage_box.width == 0 or storage_box.height == 0:
            logger.debug('Extent %s has no area', storage_box.to_tuple())
            return None
        grid = tile_grid(
            matrix_set.bounding_box,
            matrix.matrix_width,
            matrix.matrix_height,
            storage_box,
        )
        if grid is None:
            logger.debug(
                'Extent %s does not overlap tile set %s',
                storage_box.to_tuple(),
                matrix_set.bounding_box.to_tuple(),
            )
            return None

        logger.debug('Zoom %d, tile grid %s (%d tiles)', zoom, grid, grid.count)
        return _RequestPlan(
            zoom=zoom,
            matrix=matrix,
            matrix_set=matrix_set,
            storage_box=storage_box,
            grid=grid,
            width=self.width or matrix.tile_width,
            height=self.height or matrix.tile_height,
        )

    def _placement(self, plan: _RequestPlan, record: TileRecord) -> PlacementRect:
        tile_box = bounding_box_for_tile(
            plan.matrix_set.bounding_box, plan.matrix, record.column, record.row
        )
        return placement_for_tile(
            tile_box,
            plan.matrix.tile_width,
            plan.matrix.tile_height,
            plan.storage_box,
            plan.width,
            plan.height,
        )

    def _decode(self, record: TileRecord) -> Image.Image | None:
        try:
            return decode_tile(record.data)
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            logger.warning(
                'Skipping undecodable tile %d/%d/%d: %s',
                record.zoom_level,
                record.column,
                record.row,
                e,
            )
            return None

    def _draws(
        self,
        plan: _RequestPlan,
        records: Iterable[TileRecord],
    ) -> Iterator[tuple[Image.Image, PlacementRect]]:
        for record in records:
            tile = self._decode(record)
            if tile is None:
                continue
            try:
                yield tile, self._placement(plan, record)
            finally:
                tile.close()

    def _passthrough(
        self,
        plan: _RequestPlan,
        records: Iterator[TileRecord],
    ) -> tuple[TileResult | None, Iterator[TileRecord]]:
        """
        Stored bytes of a single tile matching the request exactly, if enabled.

        The tile must cover the requested extent to within half a pixel and
        have the output pixel size. The records not consumed here are
        returned for the compositing path.
        """
        matrix = plan.matrix
        if not self.settings.passthrough or plan.grid.count != 1:
            return None, records
        if (matrix.tile_width, matrix.tile_height) != (plan.width, plan.height):
            return None, records
        tile_box = bounding_box_for_tile(
            plan.matrix_set.bounding_box, matrix, plan.grid.min_x, plan.grid.min_y
        )
        tolerance = 0.5 * min(
            tile_box.width / matrix.tile_width, tile_box.height / matrix.tile_height
        )
        if not tile_box.almost_equals(plan.storage_box, tolerance):
            return None, records

        record = next(records, None)
        if record is None:
            return None, records
        fmt = _sniff_format(record.data)
        if fmt is None:
            return None, itertools.chain([record], records)
        logger.debug('Passing stored tile %d/%d through', record.column, record.row)
        return (
            TileResult(
                data=record.data,
                format=fmt,
                zoom_level=plan.zoom,
                tile_grid=plan.grid,
                tiles_drawn=1,
                passthrough=True,
            ),
            records,
        )

    # --- Results

    def _empty(
        self,
        zoom: int | None = None,
        grid: TileGrid | None = None,
    ) -> TileResult:
        return TileResult(
            data=None,
            format=self.settings.output_format.value,
            zoom_level=zoom,
            tile_grid=grid,
        )

    def _result(self, plan: _RequestPlan, data: bytes, drawn: int) -> TileResult:
        logger.debug('Composited %d tiles at zoom %d', drawn, plan.zoom)
        return TileResult(
            data=data,
            format=self.settings.output_format.value,
            zoom_level=plan.zoom,
            tile_grid=plan.grid,
            tiles_drawn=drawn,
        )


def _close_tile(tile: Image.Image | None) -> None:
    if tile is not None:
        tile.close()


def _sniff_format(data: bytes) -> str | None:
    """Image format of stored tile bytes ('png', 'jpeg', ...), read from the header."""
    try:
        with Image.open(BytesIO(data)) as img:
            return img.format.lower() if img.format else None
    except (UnidentifiedImageError, OSError):
        return None
