"""
Ask the knowledge base a question from the command line.

Usage:
    python ask.py "What is value-based selling?" [--limit 5] [--category BtoB]
"""
import sys
import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.embedding_model import EmbeddingModel, EmbeddingError
from services.vector_store import VectorStore, VectorStoreError
from services.retrieval_engine import RetrievalEngine
from services.llm_client import LLMClient, LLMClientError
from services.model_selector import GenerationModelSelector
from services.answer_service import AnswerService
from config import MAX_RESULTS

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Ask the lesson knowledge base a question")
    parser.add_argument("question", help="Question to answer")
    parser.add_argument("--limit", type=int, default=MAX_RESULTS, help=f"Reference chunks to use (default: {MAX_RESULTS})")
    parser.add_argument("--category", default=None, help="Restrict to one knowledge category (BtoB or BtoC)")
    args = parser.parse_args(argv)

    try:
        embedding_model = EmbeddingModel()
        retrieval_engine = RetrievalEngine(VectorStore(), embedding_model)
        llm_client = LLMClient()
        service = AnswerService(
            retrieval_engine,
            llm_client,
            GenerationModelSelector(client=llm_client.client)
        )
        result = service.answer(args.question, limit=args.limit, category=args.category)
    except (ValueError, EmbeddingError, VectorStoreError, LLMClientError) as e:
        logger.error(f"Failed to answer question: {e}")
        return 1

    print(result.answer)
    if result.sources:
        print("\nSources:")
        for source in result.sources:
            print(
                f"  - {source.sheet_name} [{source.section}/{source.type}] "
                f"similarity={source.similarity:.3f} adjusted={source.adjusted_score:.3f}"
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
