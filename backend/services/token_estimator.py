"""Approximate token counting for mixed Japanese/ASCII text."""
import math
import re

_JAPANESE_CHAR = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")
_ASCII_WORD = re.compile(r"[A-Za-z0-9]+")

JAPANESE_CHAR_WEIGHT = 2.0
ASCII_WORD_WEIGHT = 1.0
OTHER_CHAR_WEIGHT = 0.5


def estimate_tokens(text: str) -> int:
    """
    Estimate the token cost of ``text``.

    Japanese characters cost 2 each, each run of ASCII letters/digits costs 1,
    and every remaining character (punctuation, whitespace, other scripts)
    costs 0.5. The sum is rounded up. This is a sizing heuristic, not a
    tokenizer count.
    """
    if not text:
        return 0

    japanese_chars = len(_JAPANESE_CHAR.findall(text))
    words = _ASCII_WORD.findall(text)
    word_chars = sum(len(word) for word in words)
    other_chars = len(text) - japanese_chars - word_chars

    return math.ceil(
        japanese_chars * JAPANESE_CHAR_WEIGHT
        + len(words) * ASCII_WORD_WEIGHT
        + other_chars * OTHER_CHAR_WEIGHT
    )
