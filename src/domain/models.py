from pydantic import BaseModel, field_validator

from shared.constants import (
    FETCH_CONCURRENCY_DEFAULT,
    WEB_MERCATOR_MAX_LAT_RANGE,
    WGS84_WEB_MERCATOR_LAT_LIMIT,
    ZOOM_TOLERANCE_RATIO,
    OutputFormat,
    default_output_format,
)


class RetrieverSettings(BaseModel):
    """
    Настройки выдачи изображений из пирамиды тайлов.

    Загружаются из TOML-профиля; неизвестные ключи игнорируются.
    """

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из профилей
    }

    # Размер выходного изображения (пиксели); None: размер хранимого тайла
    width: int | None = None
    height: int | None = None

    # Формат выходного изображения
    output_format: OutputFormat = default_output_format()

    # Допуск подбора уровня пирамиды (доля ширины хранимого тайла)
    zoom_tolerance: float = ZOOM_TOLERANCE_RATIO

    # Ограничение широты для наборов в EPSG:4326 при переводе в Web Mercator
    wgs84_latitude_limit: float = WGS84_WEB_MERCATOR_LAT_LIMIT

    # Отдавать байты хранимого тайла без перекодирования, если он один
    # и точно совпадает с запросом
    passthrough: bool = False

    # Число параллельно декодируемых тайлов (асинхронный путь)
    fetch_concurrency: int = FETCH_CONCURRENCY_DEFAULT

    @field_validator('width', 'height')
    @classmethod
    def validate_size(cls, v: int | str | None) -> int | None:
        if v is None:
            return None
        iv = int(v)
        if iv <= 0:
            msg = 'Размер изображения должен быть положительным'
            raise ValueError(msg)
        return iv

    @field_validator('output_format', mode='before')
    @classmethod
    def validate_output_format(cls, v: object) -> object:
        # 'JPG' / 'Jpeg' -> 'jpeg'
        if isinstance(v, str):
            v = v.strip().lower()
            return 'jpeg' if v == 'jpg' else v
        return v

    @field_validator('zoom_tolerance')
    @classmethod
    def validate_tolerance(cls, v: float | str) -> float:
        fv = float(v)
        if not (0.0 <= fv < 1.0):
            msg = 'Допуск должен быть в диапазоне [0.0, 1.0)'
            raise ValueError(msg)
        return fv

    @field_validator('wgs84_latitude_limit')
    @classmethod
    def validate_latitude_limit(cls, v: float | str) -> float:
        fv = float(v)
        if not (0.0 < fv <= WEB_MERCATOR_MAX_LAT_RANGE):
            msg = f'Ограничение широты должно быть в диапазоне (0, {WEB_MERCATOR_MAX_LAT_RANGE}]'
            raise ValueError(msg)
        return fv

    @field_validator('fetch_concurrency')
    @classmethod
    def validate_concurrency(cls, v: int | str) -> int:
        iv = int(v)
        # Не меньше одного потока декодирования
        return max(iv, 1)
