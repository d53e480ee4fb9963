"""Services package - tile retrieval orchestration."""

from services.tile_retriever import RequestContext, TileResult, TileRetriever

__all__ = [
    'RequestContext',
    'TileResult',
    'TileRetriever',
]
