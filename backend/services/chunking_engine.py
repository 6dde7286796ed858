"""Chunking engine with neighbouring-row context windows."""
import logging
import re
from collections import Counter
from typing import List, Optional, Sequence

from models.chunk import Chunk, ChunkMetadata, ChunkStats
from models.source_row import SourceRow
from services.text_normalizer import is_valid_content, normalize, process_by_type
from services.token_estimator import estimate_tokens
from config import (
    CONTEXT_PREVIEW_CHARS,
    CONTEXT_WINDOW_SIZE,
    MAX_CHUNK_TOKENS,
    MIN_CONTENT_LENGTH,
)

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_TERMINATOR = "。"
PRECEDING_TAG = "[前]"
FOLLOWING_TAG = "[後]"

_PARAGRAPH_SPLIT = re.compile(r"\n\n+")
_SENTENCE_SPLIT = re.compile(r"[。．！？\n]")


class ChunkingEngine:
    """Segments sheet rows into retrievable, token-bounded chunks."""

    def __init__(
        self,
        max_tokens: int = MAX_CHUNK_TOKENS,
        context_size: int = CONTEXT_WINDOW_SIZE,
        min_content_length: int = MIN_CONTENT_LENGTH,
        require_meaningful: bool = False
    ):
        """
        Initialize ChunkingEngine.

        Args:
            max_tokens: Estimated-token ceiling per chunk
            context_size: Neighbouring rows on each side used for context
            min_content_length: Processed rows shorter than this are dropped
            require_meaningful: Also drop rows that are mostly symbols
        """
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if context_size < 0:
            raise ValueError("context_size cannot be negative")

        self.max_tokens = max_tokens
        self.context_size = context_size
        self.min_content_length = min_content_length
        self.require_meaningful = require_meaningful

    def chunk_sheet(self, rows: Sequence[SourceRow], sheet_name: str) -> List[Chunk]:
        """
        Chunk every qualifying row of a sheet.

        Rows without a message id or contents never produce chunks. Chunk
        indices are local to each row.

        Args:
            rows: All rows of the sheet, in sheet order
            sheet_name: Sheet identifier recorded in chunk metadata

        Returns:
            Chunks in sheet order
        """
        all_chunks: List[Chunk] = []

        for index, row in enumerate(rows):
            if not row.message_id or not row.contents:
                continue

            context = self.build_context(rows, index, self.context_size)
            all_chunks.extend(self.chunk_row(row, sheet_name, context))

        logger.info(f"Created {len(all_chunks)} chunks from {len(rows)} rows of {sheet_name}")
        return all_chunks

    def chunk_row(
        self,
        row: SourceRow,
        sheet_name: str,
        context: str = "",
        max_tokens: Optional[int] = None
    ) -> List[Chunk]:
        """
        Clean, type-process and segment one row.

        Args:
            row: Source row
            sheet_name: Sheet identifier recorded in chunk metadata
            context: Neighbouring-row excerpt attached to every chunk
            max_tokens: Overrides the engine's token ceiling

        Returns:
            Chunks for this row, empty if the row holds too little content
        """
        processed = process_by_type(row.contents, row.type, row.choices, row.correct_answer)

        if not processed or len(processed.strip()) < self.min_content_length:
            logger.debug(f"Skipping row {row.message_id}: content too short")
            return []
        if self.require_meaningful and not is_valid_content(processed, self.min_content_length):
            logger.debug(f"Skipping row {row.message_id}: no meaningful content")
            return []

        pieces = self.segment(processed, max_tokens or self.max_tokens)

        chunks = []
        for idx, content in enumerate(pieces):
            metadata = ChunkMetadata(
                sheet_name=sheet_name,
                section=row.section or "Unknown",
                type=row.type or "text",
                message_id=row.message_id,
                has_choices=bool(row.choices),
                chunk_index=idx,
                total_chunks=len(pieces),
                correct_answer=row.correct_answer or None
            )
            chunks.append(Chunk(
                content=content,
                context=context,
                metadata=metadata,
                token_count=estimate_tokens(content)
            ))

        return chunks

    def segment(self, text: str, max_tokens: Optional[int] = None) -> List[str]:
        """
        Split text into chunks under an estimated-token budget.

        Paragraphs (blank-line separated) are accumulated greedily. A paragraph
        that is over budget on its own is split into sentences, each
        re-terminated with "。", and those are accumulated the same way. A
        single sentence over budget is emitted as its own chunk.

        Args:
            text: Cleaned text
            max_tokens: Budget (defaults to the engine's)

        Returns:
            Non-empty, trimmed chunks in original order
        """
        budget = max_tokens or self.max_tokens

        if not text or not text.strip():
            return []

        if estimate_tokens(text) <= budget:
            return [text.strip()]

        chunks: List[str] = []
        current = ""

        def flush() -> None:
            nonlocal current
            if current.strip():
                chunks.append(current.strip())
            current = ""

        for paragraph in _PARAGRAPH_SPLIT.split(text):
            if estimate_tokens(paragraph) > budget:
                flush()

                for sentence in _SENTENCE_SPLIT.split(paragraph):
                    if not sentence.strip():
                        continue

                    sentence = sentence + SENTENCE_TERMINATOR
                    if current and estimate_tokens(current + sentence) > budget:
                        flush()
                    current += sentence
            else:
                candidate = current + PARAGRAPH_SEPARATOR + paragraph if current else paragraph
                if current and estimate_tokens(candidate) > budget:
                    flush()
                    candidate = paragraph
                current = candidate

        flush()
        return chunks

    @staticmethod
    def build_context(
        rows: Sequence[SourceRow],
        index: int,
        window_size: int = CONTEXT_WINDOW_SIZE
    ) -> str:
        """
        Build a short excerpt of the rows around ``rows[index]``.

        The window covers at most ``window_size`` rows on each side; rows with
        empty content inside the window are skipped without widening it.

        Args:
            rows: All rows of the sheet
            index: Position of the current row
            window_size: Rows on each side

        Returns:
            Newline-joined "[前] ..." lines followed by "[後] ..." lines
        """
        parts: List[str] = []

        for i in range(max(0, index - window_size), index):
            excerpt = _preview(rows[i])
            if excerpt:
                parts.append(f"{PRECEDING_TAG} {excerpt}...")

        for i in range(index + 1, min(len(rows) - 1, index + window_size) + 1):
            excerpt = _preview(rows[i])
            if excerpt:
                parts.append(f"{FOLLOWING_TAG} {excerpt}...")

        return "\n".join(parts)

    @staticmethod
    def chunk_stats(chunks: Sequence[Chunk]) -> ChunkStats:
        """Summarise token counts and section/type distribution."""
        token_counts = [estimate_tokens(chunk.content) for chunk in chunks]
        by_section = Counter(chunk.metadata.section for chunk in chunks)
        by_type = Counter(chunk.metadata.type for chunk in chunks)

        return ChunkStats(
            total_chunks=len(chunks),
            average_tokens=round(sum(token_counts) / len(token_counts)) if token_counts else 0,
            max_tokens=max(token_counts, default=0),
            min_tokens=min(token_counts, default=0),
            empty_chunks=sum(1 for chunk in chunks if not chunk.content.strip()),
            by_section=dict(by_section),
            by_type=dict(by_type)
        )


def _preview(row: SourceRow) -> str:
    if not row or not row.contents:
        return ""
    return normalize(row.contents)[:CONTEXT_PREVIEW_CHARS]
