"""Data models for the sheet knowledge RAG pipeline."""
from .source_row import SourceRow, SheetDataStats
from .chunk import Chunk, ChunkMetadata, ChunkStats
from .match import Match, RankedMatch

__all__ = [
    "SourceRow",
    "SheetDataStats",
    "Chunk",
    "ChunkMetadata",
    "ChunkStats",
    "Match",
    "RankedMatch",
]
