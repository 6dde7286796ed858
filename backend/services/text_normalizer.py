"""Text cleaning for raw sheet content.

Sheet cells carry editor markup (``[びpho]``, ``{center}``), pasted HTML,
Firebase-hosted image links and assorted invisible characters. Everything here
is a pure function of its input so rows can be cleaned in any order.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

from config import MIN_CONTENT_LENGTH

IMAGE_PLACEHOLDER = "[画像]"
CHOICES_LABEL = "選択肢:"

# Kanji are left out of the tag class so IMAGE_PLACEHOLDER survives a second pass.
_TAG_CHARS = r"A-Za-z0-9_\u3040-\u309F\u30A0-\u30FF"
_SQUARE_TAG = re.compile(rf"\[[{_TAG_CHARS}]+\]")
_CURLY_TAG = re.compile(rf"\{{[{_TAG_CHARS}]+\}}")

_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]+>")

_IMAGE_URL = re.compile(r"https://firebasestorage\.googleapis\.com/\S+")
_IMG_PLACEHOLDER = re.compile(r"---\s*img", re.IGNORECASE)

_ZERO_WIDTH = re.compile("[\u200B-\u200D\uFEFF]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_MEANINGFUL_CHAR = re.compile(r"[a-zA-Z0-9\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")

QUIZ_TYPES = frozenset({"survey", "multiple_choice", "quiz"})
NARRATIVE_TYPES = frozenset({"lecture", "description", "text", "article"})


@dataclass(frozen=True)
class CleaningOptions:
    """Toggles for each cleaning phase. All phases run by default."""
    remove_custom_tags: bool = True
    remove_html_tags: bool = True
    remove_image_urls: bool = True
    normalize_whitespace: bool = True
    normalize_special_chars: bool = True


DEFAULT_OPTIONS = CleaningOptions()


@dataclass
class CleaningDiff:
    """Before/after view of a cleaning pass, for debugging sheet content."""
    before: str
    after: str
    changes: List[str] = field(default_factory=list)


def remove_custom_tags(text: str) -> str:
    text = _SQUARE_TAG.sub("", text)
    return _CURLY_TAG.sub("", text)


def remove_html_tags(text: str) -> str:
    # Drop style/script bodies before the generic tag pass strips their delimiters
    text = _STYLE_BLOCK.sub("", text)
    text = _SCRIPT_BLOCK.sub("", text)
    return _HTML_TAG.sub("", text)


def remove_image_urls(text: str) -> str:
    text = _IMAGE_URL.sub(IMAGE_PLACEHOLDER, text)
    return _IMG_PLACEHOLDER.sub("", text)


def normalize_special_chars(text: str) -> str:
    text = text.replace("\u3000", " ")
    text = _ZERO_WIDTH.sub("", text)
    return _CONTROL_CHARS.sub("", text)


def normalize_whitespace(text: str) -> str:
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def normalize(raw: object, options: Optional[CleaningOptions] = None) -> str:
    """
    Clean raw sheet text for chunking and embedding.

    Markup removal always runs before character and whitespace normalization,
    since removed segments leave behind whitespace that the later phases
    collapse.

    Args:
        raw: Cell content. Anything that is not a non-empty string yields "".
        options: Phase toggles (defaults to every phase enabled)

    Returns:
        Cleaned text
    """
    if not raw or not isinstance(raw, str):
        return ""

    opts = options or DEFAULT_OPTIONS
    cleaned = _clean_pass(raw, opts)

    # Stripping characters can join fragments into new markup; repeat until stable
    while True:
        again = _clean_pass(cleaned, opts)
        if again == cleaned:
            return cleaned
        cleaned = again


def _clean_pass(text: str, opts: CleaningOptions) -> str:
    cleaned = text

    if opts.remove_custom_tags:
        cleaned = remove_custom_tags(cleaned)
    if opts.remove_html_tags:
        cleaned = remove_html_tags(cleaned)
    if opts.remove_image_urls:
        cleaned = remove_image_urls(cleaned)

    if opts.normalize_special_chars:
        cleaned = normalize_special_chars(cleaned)
    if opts.normalize_whitespace:
        cleaned = normalize_whitespace(cleaned)

    return cleaned


def process_by_type(
    content: str,
    content_type: Optional[str],
    choices: Optional[str] = None,
    correct_answer: Optional[str] = None,
) -> str:
    """
    Normalize content and apply the transform for its message type.

    Survey and quiz rows get their answer choices appended after a blank line so
    the options are searchable together with the question. ``correct_answer``
    is accepted for signature parity with the row but never inlined; callers
    carry it as chunk metadata.

    Args:
        content: Raw cell content
        content_type: Row ``type`` column (compared case-insensitively)
        choices: Raw choices cell, appended verbatim
        correct_answer: Unused here

    Returns:
        Processed text
    """
    cleaned = normalize(content)
    kind = (content_type or "").strip().lower()

    if kind in QUIZ_TYPES:
        if choices and choices.strip():
            return f"{cleaned}\n\n{CHOICES_LABEL}\n{choices}"
        return cleaned

    if kind in NARRATIVE_TYPES:
        return cleaned

    # Unknown types fall back to the cleaned text
    return cleaned


def is_valid_content(text: str, min_length: int = MIN_CONTENT_LENGTH) -> bool:
    """Check that text is long enough and not just symbols."""
    if not text or not isinstance(text, str):
        return False

    trimmed = text.strip()
    if len(trimmed) < min_length:
        return False

    return len(_MEANINGFUL_CHAR.findall(trimmed)) >= min_length / 2


def cleaning_diff(raw: str) -> CleaningDiff:
    """Describe what a default cleaning pass changes in ``raw``."""
    changes: List[str] = []
    after = normalize(raw)

    custom_tags = _SQUARE_TAG.findall(raw)
    if custom_tags:
        changes.append(f"Removed custom tags: {len(custom_tags)}")

    html_tags = _HTML_TAG.findall(raw)
    if html_tags:
        changes.append(f"Removed HTML tags: {len(html_tags)}")

    image_urls = _IMAGE_URL.findall(raw)
    if image_urls:
        changes.append(f"Replaced image URLs: {len(image_urls)}")

    if len(raw) != len(after):
        changes.append(f"Length: {len(raw)} -> {len(after)}")

    return CleaningDiff(before=raw, after=after, changes=changes)
