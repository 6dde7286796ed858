"""Unit tests for ChunkingEngine."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from models.chunk import Chunk, ChunkMetadata
from models.source_row import SourceRow
from services.chunking_engine import ChunkingEngine
from services.token_estimator import estimate_tokens


def make_row(message_id, contents, section="Lecture", type="text", **kwargs):
    return SourceRow(message_id=message_id, contents=contents, section=section, type=type, **kwargs)


class TestChunkingEngine:
    """Test suite for ChunkingEngine."""

    @pytest.fixture
    def engine(self):
        return ChunkingEngine(max_tokens=500, context_size=1)

    def test_invalid_configuration(self):
        with pytest.raises(ValueError, match="max_tokens must be positive"):
            ChunkingEngine(max_tokens=0)
        with pytest.raises(ValueError, match="context_size cannot be negative"):
            ChunkingEngine(context_size=-1)

    def test_segment_empty(self, engine):
        assert engine.segment("") == []
        assert engine.segment("   \n\n  ") == []

    def test_segment_short_text_single_chunk(self, engine):
        text = "  マーケティングとは、顧客の価値を創造する活動です。  "
        assert engine.segment(text) == [text.strip()]

    def test_segment_merges_paragraphs_under_budget(self):
        engine = ChunkingEngine(max_tokens=30)
        paragraphs = ["段落一です。", "段落二です。", "段落三です。", "段落四です。", "段落五です。"]
        text = "\n\n".join(paragraphs)

        chunks = engine.segment(text)

        assert len(chunks) > 1
        assert "\n\n".join(chunks) == text
        for chunk in chunks:
            assert estimate_tokens(chunk) <= 30

    def test_segment_splits_long_paragraph_into_sentences(self):
        engine = ChunkingEngine(max_tokens=30)
        text = "最初の文です。二番目の文です！三番目の文です？"

        chunks = engine.segment(text)

        assert chunks == ["最初の文です。二番目の文です。", "三番目の文です。"]
        for chunk in chunks:
            assert estimate_tokens(chunk) <= 30

    def test_segment_oversized_sentence_emitted_alone(self):
        engine = ChunkingEngine(max_tokens=10)
        long_sentence = "あ" * 20
        text = f"短い。{long_sentence}。短い。"

        chunks = engine.segment(text)

        assert f"{long_sentence}。" in chunks
        for chunk in chunks:
            if chunk != f"{long_sentence}。":
                assert estimate_tokens(chunk) <= 10

    def test_segment_respects_budget_on_mixed_text(self):
        engine = ChunkingEngine(max_tokens=50)
        paragraph = "Value based selling focuses on outcomes. 顧客の成果に焦点を当てる。"
        text = "\n\n".join([paragraph] * 12)

        chunks = engine.segment(text)

        assert len(chunks) > 1
        assert all(chunk == chunk.strip() and chunk for chunk in chunks)
        for chunk in chunks:
            assert estimate_tokens(chunk) <= 50

    def test_build_context_window(self):
        rows = [
            make_row("1", "Aの内容です"),
            make_row("2", "Bの内容です"),
            make_row("3", "Cの内容です"),
        ]

        context = ChunkingEngine.build_context(rows, 1, 1)

        assert context == "[前] Aの内容です...\n[後] Cの内容です..."

    def test_build_context_edges_and_truncation(self):
        long_text = "x" * 150
        rows = [make_row("1", "first row"), make_row("2", long_text)]

        assert ChunkingEngine.build_context(rows, 0, 1) == f"[後] {'x' * 100}..."
        assert ChunkingEngine.build_context(rows, 1, 1) == "[前] first row..."
        assert ChunkingEngine.build_context(rows, 0, 0) == ""

    def test_build_context_skips_empty_neighbours_without_widening(self):
        rows = [
            make_row("1", "far away row"),
            make_row("2", ""),
            make_row("3", "current row"),
        ]

        assert ChunkingEngine.build_context(rows, 2, 1) == ""

    def test_chunk_row_metadata(self, engine):
        row = SourceRow(
            message_id="m-1",
            contents="次のうち正しいものはどれですか？",
            section="",
            type="quiz",
            choices="A\nB\nC",
            correct_answer="B"
        )

        chunks = engine.chunk_row(row, "M6CH01", context="[前] prev...")

        assert len(chunks) == 1
        chunk = chunks[0]
        assert isinstance(chunk, Chunk)
        assert chunk.content.endswith("選択肢:\nA\nB\nC")
        assert chunk.context == "[前] prev..."
        assert chunk.token_count == estimate_tokens(chunk.content)
        assert chunk.metadata == ChunkMetadata(
            sheet_name="M6CH01",
            section="Unknown",
            type="quiz",
            message_id="m-1",
            has_choices=True,
            chunk_index=0,
            total_chunks=1,
            correct_answer="B"
        )

    def test_chunk_row_drops_short_content(self, engine):
        row = make_row("m-1", "<p>短い</p>")
        assert engine.chunk_row(row, "M6CH01") == []

    def test_chunk_row_require_meaningful(self):
        engine = ChunkingEngine(require_meaningful=True)
        row = make_row("m-1", "!!!!!!!!!!!!!!!!????")
        assert engine.chunk_row(row, "M6CH01") == []

    def test_chunk_row_indices_are_local(self):
        engine = ChunkingEngine(max_tokens=20)
        row = make_row("m-1", "最初の文です。二番目の文です。三番目の文です。")

        chunks = engine.chunk_row(row, "M6CH01")

        assert [c.metadata.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.metadata.total_chunks == len(chunks) for c in chunks)

    def test_chunk_sheet_skips_rows_without_id_or_contents(self, engine):
        rows = [
            make_row("", "IDのない行ですがとても長い内容です"),
            make_row("m-3", "これは正しい行の内容です"),
            make_row("m-2", ""),
        ]

        chunks = engine.chunk_sheet(rows, "M6CH01")

        assert len(chunks) == 1
        assert chunks[0].metadata.message_id == "m-3"
        assert chunks[0].context == "[前] IDのない行ですがとても長い内容です..."

    def test_chunk_sheet_context_from_neighbours(self, engine):
        rows = [
            make_row("1", "一行目のコンテンツです"),
            make_row("2", "二行目のコンテンツです"),
            make_row("3", "三行目のコンテンツです"),
        ]

        chunks = engine.chunk_sheet(rows, "M6CH01")

        assert len(chunks) == 3
        assert chunks[1].context == "[前] 一行目のコンテンツです...\n[後] 三行目のコンテンツです..."

    def test_chunk_stats(self, engine):
        rows = [
            make_row("1", "一行目のコンテンツです", section="Intro", type="text"),
            make_row("2", "二行目のコンテンツです", section="Outro", type="survey"),
        ]
        chunks = engine.chunk_sheet(rows, "M6CH01")

        stats = engine.chunk_stats(chunks)

        assert stats.total_chunks == 2
        assert stats.max_tokens == stats.min_tokens == estimate_tokens("一行目のコンテンツです")
        assert stats.empty_chunks == 0
        assert stats.by_section == {"Intro": 1, "Outro": 1}
        assert stats.by_type == {"text": 1, "survey": 1}

    def test_chunk_stats_empty(self):
        stats = ChunkingEngine.chunk_stats([])
        assert stats.total_chunks == 0
        assert stats.average_tokens == 0
