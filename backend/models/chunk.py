"""Chunk data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ChunkMetadata:
    """Provenance of a chunk within its sheet and row."""
    sheet_name: str
    section: str
    type: str
    message_id: str
    has_choices: bool
    chunk_index: int
    total_chunks: int
    correct_answer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the JSON object stored in the ``metadata`` column."""
        data: Dict[str, Any] = {
            "sheetName": self.sheet_name,
            "section": self.section,
            "type": self.type,
            "messageId": self.message_id,
            "hasChoices": self.has_choices,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
        }
        if self.correct_answer:
            data["correctAnswer"] = self.correct_answer
        return data


@dataclass(frozen=True)
class Chunk:
    """Represents a cleaned, token-bounded unit of row content for retrieval."""
    content: str
    context: str
    metadata: ChunkMetadata
    token_count: int = 0


@dataclass
class ChunkStats:
    """Aggregate token statistics for a list of chunks."""
    total_chunks: int
    average_tokens: int
    max_tokens: int
    min_tokens: int
    empty_chunks: int
    by_section: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
