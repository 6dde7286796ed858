"""Question answering over retrieved lesson knowledge."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models.match import RankedMatch
from services.retrieval_engine import RetrievalEngine
from services.llm_client import LLMClient
from services.model_selector import GenerationModelSelector
from config import MAX_RESULTS, CONTEXT_PREVIEW_CHARS

logger = logging.getLogger(__name__)

NO_KNOWLEDGE_ANSWER = (
    "申し訳ございません。ご質問に関連する情報が見つかりませんでした。"
    "別の質問をお試しください。"
)


@dataclass
class Source:
    """Reference shown next to an answer."""
    sheet_name: Optional[str]
    section: Optional[str]
    type: Optional[str]
    similarity: float
    adjusted_score: float
    content_preview: str


@dataclass
class AnswerResult:
    """Generated answer and the knowledge it was based on."""
    answer: str
    has_knowledge: bool
    sources: List[Source] = field(default_factory=list)
    model_used: Optional[str] = None


class AnswerService:
    """Retrieve, build the prompt and generate an answer."""

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        llm_client: LLMClient,
        model_selector: GenerationModelSelector
    ):
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.model_selector = model_selector

    def answer(
        self,
        question: str,
        limit: int = MAX_RESULTS,
        category: Optional[str] = None
    ) -> AnswerResult:
        """
        Answer a question from the knowledge base.

        When retrieval finds nothing the fixed "no knowledge" reply is returned
        without calling the model.

        Raises:
            ValueError: If the question is empty
            EmbeddingError, VectorStoreError, LLMClientError: From collaborators
        """
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")

        logger.info(f"Answering question: {question[:100]}")
        matches = self.retrieval_engine.retrieve(question, limit=limit, category=category)

        if not matches:
            return AnswerResult(answer=NO_KNOWLEDGE_ANSWER, has_knowledge=False)

        prompt = LLMClient.build_prompt(question, matches)
        model = self.model_selector.get_model()
        response = self.llm_client.generate(model=model, prompt=prompt)

        return AnswerResult(
            answer=response.text,
            has_knowledge=True,
            sources=[_to_source(ranked) for ranked in matches],
            model_used=response.model_used
        )


def _to_source(ranked: RankedMatch) -> Source:
    match = ranked.match
    preview = match.content[:CONTEXT_PREVIEW_CHARS]
    if len(match.content) > CONTEXT_PREVIEW_CHARS:
        preview += "..."
    return Source(
        sheet_name=match.metadata.get("sheetName", match.sheet_name),
        section=match.metadata.get("section"),
        type=match.metadata.get("type"),
        similarity=match.similarity,
        adjusted_score=ranked.adjusted_score,
        content_preview=preview
    )
