"""
Reply parsing — labeled lines in free text → ExtractedResult.

Each output field has a declared Extractor (regex + sentinel default) in a
static table. Parsing a reply's text never raises: a field that is missing or
blank degrades to its sentinel. Only a reply without any candidates/content
payload raises, since that is a transport failure rather than a content one.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Sequence

from enricher.errors import MalformedReplyError, RateLimitError, TransientApiError
from enricher.models.records import NOT_FOUND, EvaluationCriterion, ExtractedResult
from enricher.pipeline.columns import Field
from enricher.pipeline.prompts import COMPANY_FACTS, RECOMMENDATIONS_LABEL

logger = logging.getLogger('pipeline.parser')

TEXT = 'text'
SCORE = 'score'
LIST = 'list'

_DEFAULTS = {TEXT: NOT_FOUND, SCORE: 0, LIST: []}

# Optional bullet / markdown / numbering in front of a label
_LINE_PREFIX = r'(?im)^[ \t]*(?:[-*•#>]+[ \t]*)?(?:\d+[.)][ \t]*)?\**'

# Label anywhere in a line, not inside a longer word
_INLINE_PREFIX = r'(?i)(?<!\w)\**'

# After "label:" the value may sit on the next line, unless that line is itself a "label: value" line
_TEXT_VALUE = r'(?!\w)\**[ \t]*(?::\**[ \t]*(?:\n\s*(?![^\n]*\w\**:(?:\s|\Z)))?)?([^\n]*)'

_BULLET = re.compile(r'^\s*(?:[-•*]\s+|\d+[.)]\s+)')
_EMPHASIS = re.compile(r'\*\*|__')
_INTEGER = re.compile(r'-?\d+')


@dataclass(frozen=True)
class Extractor:
    """How one field is found in a reply, and what it defaults to."""
    field: str
    label: str
    kind: str = TEXT
    pattern: Optional[Pattern] = None
    # Tried when the line-anchored pattern finds nothing
    fallback: Optional[Pattern] = None

    @property
    def default(self) -> Any:
        value = _DEFAULTS[self.kind]
        return list(value) if isinstance(value, list) else value


def text_extractor(field, label: str) -> Extractor:
    escaped = re.escape(label)
    pattern = re.compile(_LINE_PREFIX + escaped + _TEXT_VALUE)
    fallback = re.compile(_INLINE_PREFIX + escaped + _TEXT_VALUE)
    return Extractor(str(field), label, TEXT, pattern, fallback)


def score_extractor(field, label: str) -> Extractor:
    # Require a colon or a score right after the label so an echoed
    # 'Title (0-100): ...' rubric line is not read as a score.
    pattern = re.compile(
        _LINE_PREFIX + re.escape(label) + r'\**[ \t]*(?::[ \t]*|(?=[\[\d]))([^\n]+)'
    )
    return Extractor(str(field), label, SCORE, pattern)


def list_extractor(field, label: str) -> Extractor:
    # The header ends at a colon or at the end of its line
    pattern = re.compile(_LINE_PREFIX + re.escape(label) + r'(?!\w)\**[ \t]*(?::\**|(?=[ \t]*$))')
    return Extractor(str(field), label, LIST, pattern)


# ── Static tables ─────────────────────────────────────────────────────────────

COMPANY_EXTRACTORS: List[Extractor] = [
    text_extractor(field, label) for field, label, _ in COMPANY_FACTS
]

RECOMMENDATIONS_EXTRACTOR = list_extractor(Field.RECOMMENDATIONS, RECOMMENDATIONS_LABEL)


def evaluation_extractors(criteria: Sequence[EvaluationCriterion]) -> List[Extractor]:
    """One score extractor per criterion, plus the recommendations block."""
    table = [score_extractor(c.field, c.title) for c in criteria]
    table.append(RECOMMENDATIONS_EXTRACTOR)
    return table


# ── Value cleanup ─────────────────────────────────────────────────────────────

def clean_text_value(raw: str) -> str:
    """Trim whitespace, markdown emphasis and one pair of enclosing brackets."""
    value = raw.strip().strip('*').strip()
    if len(value) >= 2 and value[0] == '[' and value[-1] == ']':
        value = value[1:-1].strip()
    return value


def parse_score(raw: str) -> Optional[int]:
    """First integer in the captured text, clamped to 0-100. None when absent."""
    match = _INTEGER.search(raw or '')
    if not match:
        return None
    return max(0, min(100, int(match.group())))


def clean_item(line: str) -> str:
    return _EMPHASIS.sub('', _BULLET.sub('', line, count=1)).strip()


def split_recommendations(block: str) -> List[str]:
    """
    Bulleted or numbered lines of a recommendations block, in order.

    Blank lines are skipped. The block ends at the first non-blank line
    without a list marker, so a trailing note is not taken as an item.
    """
    items = []
    for line in block.splitlines():
        if not line.strip():
            continue
        if not _BULLET.match(line):
            break
        item = clean_item(line)
        if item:
            items.append(item)
    return items


# ── Parsing ───────────────────────────────────────────────────────────────────

def reply_text(payload: Dict[str, Any]) -> str:
    """
    candidates[0].content.parts[0].text of a generateContent payload.

    Raises:
        RateLimitError / TransientApiError: the payload is an error object.
        MalformedReplyError: no candidate/content/parts payload at all.
    """
    if not isinstance(payload, dict):
        raise MalformedReplyError(f'Reply is not a JSON object: {type(payload).__name__}')

    error = payload.get('error')
    if error:
        message = error.get('message', 'Unknown error') if isinstance(error, dict) else str(error)
        status = error.get('status', '') if isinstance(error, dict) else ''
        if status == 'RESOURCE_EXHAUSTED':
            raise RateLimitError(f'API Error: RESOURCE_EXHAUSTED {message}')
        code = error.get('code', 0) if isinstance(error, dict) else 0
        raise TransientApiError(code, f'API Error: {message}')

    try:
        parts = payload['candidates'][0]['content']['parts']
    except (KeyError, IndexError, TypeError):
        raise MalformedReplyError('Reply has no candidates[0].content.parts payload')

    texts = [p.get('text', '') for p in parts if isinstance(p, dict) and p.get('text')]
    if not texts:
        raise MalformedReplyError('Reply content has no text parts')
    return '\n'.join(texts)


def extract(text: str, extractor: Extractor):
    """Apply one extractor. Returns (value, found)."""
    text = text or ''
    match = None
    for pattern in (extractor.pattern, extractor.fallback):
        match = pattern.search(text) if pattern else None
        if match:
            break
    if not match:
        return extractor.default, False

    if extractor.kind == LIST:
        header_rest, _, body = text[match.end():].partition('\n')
        items = [clean_item(header_rest)] if header_rest.strip() else []
        items.extend(split_recommendations(body))
        return items, bool(items)

    captured = clean_text_value(match.group(1))
    if extractor.kind == SCORE:
        score = parse_score(captured)
        if score is None:
            return extractor.default, False
        return score, True

    if not captured:
        return extractor.default, False
    return captured, True


def parse_text(text: str, extractors: Sequence[Extractor]) -> ExtractedResult:
    """Run every extractor over the reply text; misses hold their sentinel."""
    result = ExtractedResult(reply_text=text or '')
    for extractor in extractors:
        value, found = extract(text, extractor)
        result.values[extractor.field] = value
        if not found:
            result.missing.append(extractor.field)
    if result.missing:
        logger.debug("Fields not found in reply: %s", ', '.join(result.missing))
    return result


class ResponseParser:
    """Pure parser over a fixed extractor table."""

    def __init__(self, extractors: Sequence[Extractor]):
        self.extractors = list(extractors)

    def parse(self, payload: Dict[str, Any]) -> ExtractedResult:
        return parse_text(reply_text(payload), self.extractors)

    def parse_text(self, text: str) -> ExtractedResult:
        return parse_text(text, self.extractors)
