"""
Column resolution — logical field name → 1-based column position.

Two strategies:
  - static:  a field → column letter table ('B', 'AV', ...)
  - dynamic: scan the header row for a matching header text

Positions are resolved once per run into a ColumnIndex; a field that cannot
be resolved maps to NOT_FOUND (-1) and is treated as unavailable.
"""
import logging
from enum import Enum
from typing import Dict, Iterable, List, Any, Optional

logger = logging.getLogger('pipeline.columns')

NOT_FOUND = -1


class Field(str, Enum):
    """Closed set of logical fields a row can carry."""
    # Company lookup
    COMPANY_NAME = 'companyName'
    OFFICIAL_NAME = 'officialName'
    CUI = 'cui'
    WEBSITE = 'website'
    REVENUE = 'revenue'
    PROFIT = 'profit'
    EMPLOYEES = 'employees'
    # Candidate profile
    LINKEDIN_NAME = 'linkedinName'
    LINKEDIN_HEADLINE = 'linkedinHeadline'
    LINKEDIN_JOB_TITLE = 'linkedinJobTitle'
    LINKEDIN_COMPANY = 'linkedinCompany'
    LINKEDIN_LOCATION = 'linkedinLocation'
    LINKEDIN_SUMMARY = 'linkedinSummary'
    LINKEDIN_SKILLS = 'linkedinSkills'
    LINKEDIN_EXPERIENCE = 'linkedinExperience'
    LINKEDIN_EDUCATION = 'linkedinEducation'
    # Evaluation output
    TECHNICAL_SCORE = 'technicalScore'
    EXPERIENCE_SCORE = 'experienceScore'
    OVERALL_SCORE = 'overallScore'
    CRITERION_1 = 'criterion1'
    CRITERION_2 = 'criterion2'
    CRITERION_3 = 'criterion3'
    RECOMMENDATIONS = 'recommendations'
    CONCLUSION = 'conclusion'
    # Bookkeeping
    STATUS = 'status'

    def __str__(self):
        return self.value


CRITERION_FIELDS = (Field.CRITERION_1, Field.CRITERION_2, Field.CRITERION_3)

PROFILE_FIELDS = (
    Field.LINKEDIN_NAME,
    Field.LINKEDIN_HEADLINE,
    Field.LINKEDIN_JOB_TITLE,
    Field.LINKEDIN_COMPANY,
    Field.LINKEDIN_LOCATION,
    Field.LINKEDIN_SUMMARY,
    Field.LINKEDIN_SKILLS,
    Field.LINKEDIN_EXPERIENCE,
    Field.LINKEDIN_EDUCATION,
)


def as_field(name) -> Field:
    """Coerce a config key to a Field. Raises ValueError for unknown names."""
    if isinstance(name, Field):
        return name
    return Field(name)


def column_to_number(letters: str) -> int:
    """
    Spreadsheet column letters → 1-based number.

    'A' → 1, 'Z' → 26, 'AA' → 27, 'AV' → 48, 'AZ' → 52.
    """
    letters = (letters or '').strip().upper()
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column letters: {letters!r}")
    number = 0
    for ch in letters:
        number = number * 26 + (ord(ch) - ord('A') + 1)
    return number


def find_header(header_row: List[Any], name: str) -> int:
    """
    Locate a header in row 1, case-insensitively.

    An exact (trimmed) match wins; otherwise the first header containing
    `name` is used. Returns NOT_FOUND when neither matches.
    """
    wanted = (name or '').strip().lower()
    if not wanted:
        return NOT_FOUND
    cells = ['' if v is None else str(v).strip().lower() for v in header_row]

    for idx, cell in enumerate(cells):
        if cell == wanted:
            return idx + 1
    for idx, cell in enumerate(cells):
        if wanted in cell:
            logger.debug("Header '%s' matched loosely at column %s ('%s')", name, idx + 1, cell)
            return idx + 1
    return NOT_FOUND


class ColumnIndex:
    """Typed mapping from Field to column position, resolved once per run."""

    def __init__(self, positions: Optional[Dict[Field, int]] = None):
        self._positions: Dict[Field, int] = {}
        for name, pos in (positions or {}).items():
            self._positions[as_field(name)] = pos

    @classmethod
    def from_letters(cls, letters: Dict[str, str]) -> 'ColumnIndex':
        """Static strategy: field → column letter table."""
        return cls({as_field(name): column_to_number(letter) for name, letter in letters.items()})

    @classmethod
    def from_headers(
        cls,
        header_row: List[Any],
        fields: Iterable,
        headers: Optional[Dict[str, str]] = None,
    ) -> 'ColumnIndex':
        """
        Dynamic strategy: scan the header row for each field.

        The header text searched for is headers[field] when given, otherwise
        the field's logical name.
        """
        headers = {str(as_field(k)): v for k, v in (headers or {}).items()}
        positions = {}
        for name in fields:
            f = as_field(name)
            label = headers.get(f.value, f.value)
            pos = find_header(header_row, label)
            if pos == NOT_FOUND:
                logger.warning("Column for '%s' not found (header '%s')", f.value, label)
            positions[f] = pos
        return cls(positions)

    def resolve(self, name) -> int:
        """Position of `name`, or NOT_FOUND (with a warning) when unavailable."""
        f = as_field(name)
        pos = self._positions.get(f, NOT_FOUND)
        if pos == NOT_FOUND:
            logger.warning("Field '%s' has no column in this layout", f.value)
        return pos

    def has(self, name) -> bool:
        return self._positions.get(as_field(name), NOT_FOUND) != NOT_FOUND

    def __repr__(self):
        mapped = {f.value: pos for f, pos in self._positions.items()}
        return f'ColumnIndex({mapped})'
