"""Sheet row data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

# Columns mapped onto SourceRow attributes; everything else lands in ``extra``.
_KNOWN_FIELDS = ("message_id", "section", "type", "subtype", "contents", "choices", "correct_answer")


@dataclass(frozen=True)
class SourceRow:
    """One content row read from a lesson sheet."""
    message_id: str
    contents: str
    section: str = ""
    type: str = ""
    subtype: Optional[str] = None
    choices: Optional[str] = None
    correct_answer: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SourceRow":
        """Build a row from a header-keyed mapping (keys already snake_cased)."""
        extra = {k: v for k, v in data.items() if k not in _KNOWN_FIELDS}
        return cls(
            message_id=str(data.get("message_id") or ""),
            contents=str(data.get("contents") or ""),
            section=str(data.get("section") or ""),
            type=str(data.get("type") or ""),
            subtype=data.get("subtype") or None,
            choices=data.get("choices") or None,
            correct_answer=data.get("correct_answer") or None,
            extra=extra,
        )


@dataclass
class SheetDataStats:
    """Row counts and distinct labels for one sheet."""
    sheet_name: str
    total_rows: int
    valid_rows: int
    empty_rows: int
    sections: Set[str]
    types: Set[str]
