"""Domain layer - settings models."""
from domain.models import RetrieverSettings

__all__ = [
    'RetrieverSettings',
]
