"""Vector search match models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Match:
    """A vector store hit for a query."""
    content: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    context: Optional[str] = None
    id: Optional[str] = None
    category: Optional[str] = None
    sheet_name: Optional[str] = None

    @property
    def section(self) -> str:
        return str(self.metadata.get("section", ""))

    @property
    def type(self) -> str:
        return str(self.metadata.get("type", ""))


@dataclass(frozen=True)
class RankedMatch:
    """Match with its priority-adjusted score; ``match.similarity`` is untouched."""
    match: Match
    adjusted_score: float
    rank: int  # position in the raw search results
