from enum import Enum

# --- Константы Web Mercator и XYZ
# Половина ширины мира Web Mercator (метры)
WEB_MERCATOR_HALF_WORLD_WIDTH = 20037508.342789244
# Границы широты, в которых определена проекция Web Mercator (градусы)
WEB_MERCATOR_MAX_LAT_RANGE = 85.0511287798066
WEB_MERCATOR_MIN_LAT_RANGE = -85.05112877980659

# --- Константы WGS84 (тайлинг долгота/широта)
WGS84_HALF_WORLD_LON_WIDTH = 180.0
WGS84_HALF_WORLD_LAT_HEIGHT = 90.0

# Небольшой эпсилон для расчётов на границах тайлов
XY_EPSILON = 1e-9

# Максимальный уровень приближения, до которого имеет смысл считать zoom
MAX_ZOOM_LEVEL = 30

# Базовый размер тайла (пикселей), если размер не задан в матрице
TILE_SIZE = 256

# --- Коды EPSG
EPSG_WEB_MERCATOR = 3857
EPSG_WGS84 = 4326
WEB_MERCATOR_CRS = f'EPSG:{EPSG_WEB_MERCATOR}'
WGS84_CRS = f'EPSG:{EPSG_WGS84}'

# --- Подбор уровня пирамиды
# Допуск (доля ширины хранимого тайла) при сравнении ширины запроса и тайла
ZOOM_TOLERANCE_RATIO = 0.001
# Ограничение широты для наборов в EPSG:4326 перед проекцией в Web Mercator
WGS84_WEB_MERCATOR_LAT_LIMIT = 85.05

# Число точек уплотнения сторон рамки при перепроецировании
TRANSFORM_DENSIFY_POINTS = 21

# Максимальное число параллельно декодируемых тайлов
FETCH_CONCURRENCY_DEFAULT = 8
# Размер очереди декодированных тайлов
FETCH_QUEUE_MAX = 64

# --- Таблицы GeoPackage
GPKG_SPATIAL_REF_SYS_TABLE = 'gpkg_spatial_ref_sys'
GPKG_TILE_MATRIX_SET_TABLE = 'gpkg_tile_matrix_set'
GPKG_TILE_MATRIX_TABLE = 'gpkg_tile_matrix'
# Допустимые символы имени пользовательской таблицы тайлов
GPKG_TABLE_NAME_PATTERN = r'^[A-Za-z_][A-Za-z0-9_-]*$'

# --- Логирование
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class OutputFormat(str, Enum):
    PNG = 'png'
    JPEG = 'jpeg'
    WEBP = 'webp'


# Имена форматов Pillow для сохранения
PIL_FORMAT_NAMES: dict[OutputFormat, str] = {
    OutputFormat.PNG: 'PNG',
    OutputFormat.JPEG: 'JPEG',
    OutputFormat.WEBP: 'WEBP',
}

# Качество JPEG/WEBP по умолчанию
LOSSY_QUALITY_DEFAULT = 90


def default_output_format() -> OutputFormat:
    return OutputFormat.PNG
