"""Services for the lesson knowledge base."""
from .text_normalizer import normalize, process_by_type, is_valid_content, cleaning_diff
from .token_estimator import estimate_tokens
from .chunking_engine import ChunkingEngine
from .reranker import Reranker
from .embedding_model import EmbeddingModel, EmbeddingError, EmbeddingValidationError
from .vector_store import VectorStore, VectorStoreError
from .sheet_loader import SheetLoader, SheetsError, resolve_category
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .model_selector import GenerationModelSelector, ModelCache
from .retrieval_engine import RetrievalEngine
from .answer_service import AnswerService, AnswerResult, Source

__all__ = [
    'normalize', 'process_by_type', 'is_valid_content', 'cleaning_diff', 'estimate_tokens',
    'ChunkingEngine', 'Reranker', 'EmbeddingModel', 'EmbeddingError', 'EmbeddingValidationError',
    'VectorStore', 'VectorStoreError', 'SheetLoader', 'SheetsError', 'resolve_category',
    'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'GenerationModelSelector',
    'ModelCache', 'RetrievalEngine', 'AnswerService', 'AnswerResult', 'Source'
]
