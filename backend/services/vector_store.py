"""Vector store implementation using Supabase pgvector."""
import logging
from typing import List, Optional, Sequence
from supabase import create_client, Client
from models.chunk import Chunk
from models.match import Match
from config import SUPABASE_URL, SUPABASE_KEY, MATCH_THRESHOLD, MAX_RESULTS

logger = logging.getLogger(__name__)

# Delete filters need a predicate; no row carries the nil UUID.
_NIL_UUID = "00000000-0000-0000-0000-000000000000"


class VectorStoreError(RuntimeError):
    """Supabase read or write failure."""


def to_pgvector(embedding: Sequence[float]) -> str:
    """Render an embedding in pgvector's text format, e.g. ``[0.1,0.2]``."""
    return "[" + ",".join(str(float(value)) for value in embedding) + "]"


class VectorStore:
    """Store chunk embeddings and run similarity search over the ``knowledge_base`` table."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = "knowledge_base"
    ):
        """
        Initialize the vector store with Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase service role key
            table_name: Name of the table to store chunks

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.table_name = table_name

        # Initialize Supabase client
        self.client: Client = create_client(supabase_url, supabase_key)

        logger.info(f"Initialized VectorStore with table: {table_name}")

    def add_chunks(
        self,
        chunks: List[Chunk],
        embeddings: List[List[float]],
        category: str,
        sheet_name: str
    ) -> int:
        """
        Insert chunks of one sheet together with their embeddings.

        Args:
            chunks: Chunks to store
            embeddings: One embedding per chunk, same order
            category: Knowledge category ("BtoB" or "BtoC")
            sheet_name: Source sheet

        Returns:
            Number of rows inserted

        Raises:
            ValueError: If chunks is empty or does not line up with embeddings
            VectorStoreError: If database operation fails
        """
        if not chunks:
            raise ValueError("Chunks list cannot be empty")

        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )

        logger.info(f"Adding {len(chunks)} chunks from {sheet_name} to vector store...")

        records = [
            {
                "category": category,
                "sheet_name": sheet_name,
                "row_number": None,  # chunks are not tied to a single sheet row
                "content": chunk.content,
                "context": chunk.context,
                "metadata": chunk.metadata.to_dict(),
                "embedding": to_pgvector(embedding)
            }
            for chunk, embedding in zip(chunks, embeddings)
        ]

        try:
            response = self.client.table(self.table_name).insert(records).execute()
        except Exception as e:
            error_msg = f"Failed to add chunks to vector store: {str(e)}"
            logger.error(error_msg, exc_info=True)
            raise VectorStoreError(error_msg) from e

        inserted = len(response.data or [])
        logger.info(f"Successfully added {inserted} chunks to vector store")
        return inserted

    def search(
        self,
        query_embedding: List[float],
        threshold: float = MATCH_THRESHOLD,
        count: int = MAX_RESULTS,
        category: Optional[str] = None
    ) -> List[Match]:
        """
        Find chunks similar to the query embedding.

        Uses the ``match_knowledge`` RPC, or ``match_knowledge_by_category``
        when a category filter is given. Similarity is returned exactly as the
        database computed it.

        Args:
            query_embedding: Embedding vector for user query
            threshold: Minimum cosine similarity
            count: Number of matches to retrieve
            category: Restrict matches to one knowledge category

        Returns:
            Matches ordered by similarity, best first

        Raises:
            ValueError: If query_embedding is empty or count is invalid
            VectorStoreError: If database operation fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        if count <= 0:
            raise ValueError("count must be positive")

        params = {
            "query_embedding": list(query_embedding),
            "match_threshold": threshold,
            "match_count": count
        }
        function_name = "match_knowledge"
        if category:
            function_name = "match_knowledge_by_category"
            params["filter_category"] = category

        try:
            response = self.client.rpc(function_name, params).execute()
        except Exception as e:
            error_msg = f"Failed to search vector store: {str(e)}"
            logger.error(error_msg, exc_info=True)
            raise VectorStoreError(error_msg) from e

        try:
            matches = [
                Match(
                    id=row.get("id"),
                    content=row.get("content") or "",
                    context=row.get("context"),
                    metadata=dict(row.get("metadata") or {}),
                    similarity=float(row["similarity"]),
                    category=row.get("category"),
                    sheet_name=row.get("sheet_name")
                )
                for row in response.data or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            error_msg = f"Invalid search response from vector store: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg) from e

        logger.debug(f"Found {len(matches)} matches for query")
        return matches

    def clear(self) -> None:
        """
        Delete every row from the knowledge table.

        Raises:
            VectorStoreError: If database operation fails
        """
        try:
            self.client.table(self.table_name).delete().neq("id", _NIL_UUID).execute()
            logger.info("Cleared all chunks from vector store")
        except Exception as e:
            error_msg = f"Failed to clear vector store: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg) from e

    def count(self) -> int:
        """
        Get the total number of chunks in the vector store.

        Raises:
            VectorStoreError: If database operation fails
        """
        try:
            response = self.client.table(self.table_name).select("id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count chunks in vector store: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg) from e
