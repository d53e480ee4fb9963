"""Растровая поверхность и склейка тайлов в выходное изображение (Pillow)."""

from __future__ import annotations

import logging
from functools import reduce
from io import BytesIO
from typing import TYPE_CHECKING

from PIL import Image

from geo.geometry import rect_overlap
from shared.constants import LOSSY_QUALITY_DEFAULT, PIL_FORMAT_NAMES, OutputFormat

if TYPE_CHECKING:
    from collections.abc import Iterable

    from geo.geometry import PixelRect
    from tiles.matrix import PlacementRect

logger = logging.getLogger(__name__)


def decode_tile(data: bytes) -> Image.Image:
    """
    Декодирует байты тайла в RGBA-изображение.

    Ошибки Pillow (UnidentifiedImageError, OSError) пробрасываются вызывающему.
    """
    with Image.open(BytesIO(data)) as img:
        img.load()
        return img.convert('RGBA')


class RasterSurface:
    """
    Выходной растр одного запроса.

    Тайлы рисуются строго последовательно; прозрачные пиксели тайла
    не затирают уже нарисованное, непрозрачные перекрывают (последний
    нарисованный побеждает).
    """

    def __init__(self, image: Image.Image):
        self._image = image

    @classmethod
    def create(cls, width: int, height: int) -> RasterSurface:
        return cls(Image.new('RGBA', (width, height), (0, 0, 0, 0)))

    @property
    def image(self) -> Image.Image:
        return self._image

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    def draw_tile(
        self,
        data: bytes,
        destination: PixelRect,
        source: PixelRect | None = None,
    ) -> bool:
        """Декодирует тайл и рисует его в ``destination``."""
        tile = decode_tile(data)
        try:
            return self.draw_image(tile, destination, source)
        finally:
            tile.close()

    def draw_image(
        self,
        tile: Image.Image,
        destination: PixelRect,
        source: PixelRect | None = None,
    ) -> bool:
        """
        Рисует область ``source`` тайла в прямоугольник ``destination``.

        Возвращает False, если после округления прямоугольник не пересекает
        поверхность.
        """
        overlap = rect_overlap(destination, self.width, self.height)
        if overlap is None:
            return False
        ox0, oy0, ox1, oy1 = overlap
        dst_x, dst_y, dst_w, dst_h = destination.rounded()

        img = tile if tile.mode == 'RGBA' else tile.convert('RGBA')
        if source is None:
            src_x, src_y, src_w, src_h = 0.0, 0.0, float(img.width), float(img.height)
        else:
            src_x, src_y, src_w, src_h = source.x, source.y, source.width, source.height

        # Масштабируем только видимую часть: область источника, попадающую
        # на поверхность, переводится в пиксели тайла
        scale_x = src_w / dst_w
        scale_y = src_h / dst_h
        box = (
            max(src_x + (ox0 - dst_x) * scale_x, 0.0),
            max(src_y + (oy0 - dst_y) * scale_y, 0.0),
            min(src_x + (ox1 - dst_x) * scale_x, float(img.width)),
            min(src_y + (oy1 - dst_y) * scale_y, float(img.height)),
        )
        size = (ox1 - ox0, oy1 - oy0)
        if box != (0, 0, *img.size) or size != img.size:
            img = img.resize(size, Image.Resampling.LANCZOS, box=box)
        self._image.alpha_composite(img, (ox0, oy0))
        return True

    def encode(
        self,
        fmt: OutputFormat | str,
        quality: int = LOSSY_QUALITY_DEFAULT,
    ) -> bytes:
        """Кодирует поверхность в PNG, JPEG или WEBP."""
        fmt = OutputFormat(fmt)
        image = self._image
        params: dict[str, object] = {}
        if fmt is OutputFormat.JPEG:
            # JPEG не поддерживает альфа-канал
            image = image.convert('RGB')
            params['quality'] = quality
        elif fmt is OutputFormat.WEBP:
            params['quality'] = quality
        buf = BytesIO()
        image.save(buf, format=PIL_FORMAT_NAMES[fmt], **params)
        return buf.getvalue()

    def close(self) -> None:
        self._image.close()

    def __enter__(self) -> RasterSurface:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def composite(
    surface: RasterSurface,
    draws: Iterable[tuple[Image.Image, PlacementRect]],
) -> int:
    """
    Последовательная свёртка отрисовок на одну поверхность.

    Порядок отрисовки совпадает с порядком ``draws``. Возвращает число
    реально нарисованных тайлов.
    """

    def _draw(count: int, draw: tuple[Image.Image, PlacementRect]) -> int:
        tile, placement = draw
        drawn = surface.draw_image(tile, placement.destination, placement.source)
        return count + int(drawn)

    total = reduce(_draw, draws, 0)
    logger.debug('Отрисовано тайлов: %d', total)
    return total
