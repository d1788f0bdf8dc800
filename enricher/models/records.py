"""
In-memory value types that flow through one row's processing.

None of these are cached across rows: a Record is read fresh from the store
at the start of each row, and an ExtractedResult is written once and dropped.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional


NOT_FOUND = 'N/A'


@dataclass(frozen=True)
class EvaluationCriterion:
    """A named rubric dimension the model scores 0-100."""
    title: str
    prompt_fragment: str
    field: str = ''          # logical output field the score is written to


@dataclass
class Record:
    """One data row, keyed by logical field name."""
    row: int
    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def text(self, name: str) -> str:
        """Cell value as stripped text ('' for missing or None)."""
        value = self.values.get(name)
        if value is None:
            return ''
        return str(value).strip()

    def missing(self, names: List[str]) -> List[str]:
        return [name for name in names if not self.text(name)]


@dataclass(frozen=True)
class ModelRequest:
    prompt_text: str
    search_grounding: bool = False


@dataclass
class ModelReply:
    """Raw reply of one successful generateContent call."""
    status_code: int
    raw_text: str
    payload: Optional[Dict[str, Any]] = None
    attempts: int = 1


@dataclass
class ExtractedResult:
    """Field values parsed from a reply; missing fields hold their sentinel."""
    values: Dict[str, Any] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    reply_text: str = ''

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    @property
    def recommendations(self) -> List[str]:
        return list(self.values.get('recommendations') or [])
