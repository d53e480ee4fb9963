"""Shared constants and exceptions."""
from shared.exceptions import (
    InvalidExtentError,
    StorageError,
    TileRetrievalError,
    UnsupportedProjectionError,
)

__all__ = [
    'InvalidExtentError',
    'StorageError',
    'TileRetrievalError',
    'UnsupportedProjectionError',
]
