"""Command line entry point: inspect a GeoPackage tile table and render images from it."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from domain.models import RetrieverSettings
from geo.bounding_box import BoundingBox
from profiles import load_profile
from services.tile_retriever import TileResult, TileRetriever
from shared.constants import LOG_FORMAT, WEB_MERCATOR_CRS, OutputFormat
from shared.exceptions import TileRetrievalError
from tiles.grid import TileGrid
from tiles.store import GeoPackageTileStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EMPTY = 2


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure console (and optional file) logging."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('gpkg', type=Path, help='GeoPackage file')
    common.add_argument('table', help='Tile table name')
    common.add_argument('--profile', type=Path, help='TOML settings profile')
    common.add_argument('--verbose', action='store_true', help='Debug logging')
    common.add_argument('--log-file', type=Path, help='Also write the log to a file')

    render = argparse.ArgumentParser(add_help=False)
    render.add_argument('-o', '--output', type=Path, required=True, help='Output image')
    render.add_argument(
        '--format',
        choices=[f.value for f in OutputFormat],
        help='Output format (overrides the profile)',
    )
    render.add_argument('--width', type=int, help='Output width, px')
    render.add_argument('--height', type=int, help='Output height, px')
    render.add_argument(
        '--passthrough',
        action='store_true',
        help='Return a stored tile unchanged when it matches the request exactly',
    )

    parser = argparse.ArgumentParser(
        description='GeoPackage tile pyramid retrieval',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('info', parents=[common], help='Describe the tile table')

    xyz = sub.add_parser('xyz', parents=[common, render], help='Render an XYZ tile')
    xyz.add_argument('z', type=int)
    xyz.add_argument('x', type=int)
    xyz.add_argument('y', type=int)

    bbox = sub.add_parser('bbox', parents=[common, render], help='Render an extent')
    bbox.add_argument('min_x', type=float)
    bbox.add_argument('min_y', type=float)
    bbox.add_argument('max_x', type=float)
    bbox.add_argument('max_y', type=float)
    bbox.add_argument('--crs', default=WEB_MERCATOR_CRS, help='CRS of the extent')
    bbox.add_argument('--zoom', type=int, help='Stored zoom level (default: best match)')
    return parser


def _settings(args: argparse.Namespace) -> RetrieverSettings:
    settings = load_profile(args.profile) if args.profile else RetrieverSettings()
    overrides: dict[str, object] = {}
    for field in ('width', 'height'):
        value = getattr(args, field, None)
        if value is not None:
            overrides[field] = value
    if getattr(args, 'format', None):
        overrides['output_format'] = args.format
    if getattr(args, 'passthrough', False):
        overrides['passthrough'] = True
    if overrides:
        settings = RetrieverSettings.model_validate(
            {**settings.model_dump(), **overrides}
        )
    return settings


def _describe(store: GeoPackageTileStore) -> None:
    matrix_set = store.tile_matrix_set()
    print(f'table: {matrix_set.table_name}')
    print(f'crs: {matrix_set.crs}')
    print(f'bounds: {matrix_set.bounding_box.to_tuple()}')
    for matrix in store.tile_matrices():
        grid = TileGrid(0, 0, matrix.matrix_width - 1, matrix.matrix_height - 1)
        stored = store.count_tiles_in_grid(grid, matrix.zoom_level)
        print(
            f'zoom {matrix.zoom_level}: {matrix.matrix_width}x{matrix.matrix_height} tiles '
            f'of {matrix.tile_width}x{matrix.tile_height} px, {stored} stored'
        )


def _write(result: TileResult, output: Path) -> int:
    if result.data is None:
        logger.warning('No stored tiles for the request, nothing written')
        return EXIT_EMPTY
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.data)
    logger.info(
        'Saved %s (%s, zoom %s, %d tiles%s)',
        output,
        result.format,
        result.zoom_level,
        result.tiles_drawn,
        ', passthrough' if result.passthrough else '',
    )
    return EXIT_OK


def run(args: argparse.Namespace) -> int:
    settings = _settings(args)
    with GeoPackageTileStore(args.gpkg, args.table) as store:
        if args.command == 'info':
            _describe(store)
            return EXIT_OK

        retriever = TileRetriever(store, settings=settings)
        if args.command == 'xyz':
            logger.info('Rendering XYZ tile %d/%d/%d', args.z, args.x, args.y)
            result = retriever.get_tile(args.x, args.y, args.z)
        else:
            box = BoundingBox(args.min_x, args.min_y, args.max_x, args.max_y)
            logger.info('Rendering extent %s (%s)', box.to_tuple(), args.crs)
            zoom = args.zoom
            if zoom is None:
                zoom = retriever.determine_zoom_level(box, args.crs)
            result = retriever.get_tile_with_bounds(box, zoom, args.crs)
        return _write(result, args.output)


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    try:
        return run(args)
    except (TileRetrievalError, FileNotFoundError, ValidationError) as e:
        logger.error('%s', e)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
