"""
Tile retrieval exceptions

Exception hierarchy for error handling.
"""


class TileRetrievalError(Exception):
    """Base exception for tile retrieval"""

    pass


class InvalidExtentError(TileRetrievalError, ValueError):
    """Bounding box is non-finite or inverted"""

    pass


class UnsupportedProjectionError(TileRetrievalError):
    """Coordinates cannot be transformed between the requested CRSs"""

    pass


class StorageError(TileRetrievalError):
    """Tile storage could not be read"""

    pass
