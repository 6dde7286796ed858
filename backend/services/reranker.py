"""Section/type priority re-ranking of vector search matches."""
import logging
from typing import List, Mapping, Optional, Sequence

from models.match import Match, RankedMatch
from config import SECTION_PRIORITY, TYPE_PRIORITY

logger = logging.getLogger(__name__)


class Reranker:
    """
    Re-score raw similarity matches by where the content sits in a lesson.

    ``adjusted_score = similarity * section_weight * type_weight``. Intro and
    lecture rows are boosted, outro rows and surveys are damped, and unknown
    labels keep a weight of 1.0. Ties on the adjusted score keep the order the
    vector store returned.
    """

    def __init__(
        self,
        section_priority: Optional[Mapping[str, float]] = None,
        type_priority: Optional[Mapping[str, float]] = None
    ):
        self.section_priority = dict(SECTION_PRIORITY if section_priority is None else section_priority)
        self.type_priority = dict(TYPE_PRIORITY if type_priority is None else type_priority)

    def section_weight(self, section: str) -> float:
        return float(self.section_priority.get(section, 1.0))

    def type_weight(self, content_type: str) -> float:
        return float(self.type_priority.get(content_type, 1.0))

    def score(self, match: Match) -> float:
        """Priority-adjusted score for a single match."""
        return match.similarity * self.section_weight(match.section) * self.type_weight(match.type)

    def rerank(self, matches: Sequence[Match], limit: int) -> List[RankedMatch]:
        """
        Order matches by adjusted score and keep the top ``limit``.

        Args:
            matches: Raw search results, in the order the store returned them
            limit: Maximum number of results

        Returns:
            Ranked matches, best first. An empty list means nothing relevant.
        """
        if limit <= 0 or not matches:
            return []

        ranked = [
            RankedMatch(match=match, adjusted_score=self.score(match), rank=position)
            for position, match in enumerate(matches)
        ]
        ranked.sort(key=lambda item: (-item.adjusted_score, item.rank))

        logger.debug(f"Re-ranked {len(ranked)} matches, keeping {min(limit, len(ranked))}")
        return ranked[:limit]
