"""Unit tests for the token estimator."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from services.token_estimator import estimate_tokens


@pytest.mark.parametrize("text,expected", [
    ("", 0),
    (None, 0),
    ("こんにちは", 10),
    ("カタカナ", 8),
    ("漢字", 4),
    ("hello", 1),
    ("hello world", 3),      # 2 words + 1 space
    ("GPT4 2024", 3),
    ("。", 1),                # half a token rounds up
    ("日本語 and English!", 10),  # 6 + 2 words + 3 * 0.5 rounded up
])
def test_estimate_tokens(text, expected):
    assert estimate_tokens(text) == expected


def test_word_characters_are_not_double_counted():
    """A long ASCII word costs one token, not one per letter."""
    assert estimate_tokens("internationalization") == 1


def test_monotonic_in_appended_text():
    base = "マーケティングの基本"
    assert estimate_tokens(base + "とは何か") > estimate_tokens(base)
