"""
Pipeline contracts.

Every enrichment mode implements ModeAdapter. Mode-specific logic (prompt,
extractor table, criteria, conclusion text) lives in concrete adapter classes;
the row processor and batch runner only see the uniform interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Type, Optional

from enricher.config import Settings
from enricher.models.records import EvaluationCriterion, ExtractedResult, ModelRequest, Record
from enricher.pipeline.columns import ColumnIndex
from enricher.pipeline.parser import ResponseParser


class RowState(str, Enum):
    """Where one row ended up after a processing attempt."""
    SKIPPED = 'skipped'          # already processed
    IGNORED = 'ignored'          # blank required input, left untouched
    INVALID = 'invalid'          # blank required input, marked invalid
    SUCCESS = 'success'
    RATE_LIMITED = 'rate_limited'
    FAILED = 'failed'
    ABANDONED = 'abandoned'      # rate-limit cooldowns exhausted


@dataclass
class RowOutcome:
    row: int
    state: RowState
    label: str = ''
    message: str = ''
    result: Optional[ExtractedResult] = None
    cooldowns: int = 0


@dataclass
class BatchResult:
    """Counters and per-row outcomes of one batch run."""
    processed: int = 0
    skipped: int = 0
    checked: int = 0
    invalid: int = 0
    failed: int = 0
    abandoned: int = 0
    outcomes: List[RowOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cap_reached: bool = False

    def add(self, outcome: RowOutcome):
        self.outcomes.append(outcome)
        if outcome.state == RowState.IGNORED:
            return
        self.checked += 1
        if outcome.state == RowState.SUCCESS:
            self.processed += 1
        elif outcome.state == RowState.SKIPPED:
            self.skipped += 1
        elif outcome.state == RowState.INVALID:
            self.invalid += 1
        elif outcome.state == RowState.FAILED:
            self.failed += 1
            self.errors.append(f'Row {outcome.row}: {outcome.message}')
        elif outcome.state == RowState.ABANDONED:
            self.abandoned += 1
            self.errors.append(f'Row {outcome.row}: {outcome.message}')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'skipped': self.skipped,
            'checked': self.checked,
            'invalid': self.invalid,
            'failed': self.failed,
            'abandoned': self.abandoned,
            'cap_reached': self.cap_reached,
            'errors': self.errors[-20:],
        }


@dataclass
class RunContext:
    """Per-run state shared by every row: resolved columns, criteria, job description."""
    settings: Settings
    columns: ColumnIndex
    criteria: List[EvaluationCriterion] = field(default_factory=list)
    job_description: str = ''
    input_fields: List[str] = field(default_factory=list)
    score_fields: List[str] = field(default_factory=list)
    output_fields: List[str] = field(default_factory=list)


class ModeAdapter(ABC):
    """
    Base class for enrichment modes.

    prepare() runs once per run and may raise StructuralValidationError; the
    remaining hooks are called once per row and must not touch the store.
    """
    mode: str = ''
    description: str = ''
    noun: str = 'rânduri'                 # used in the final status line

    @abstractmethod
    def prepare(self, settings: Settings, store, workbook=None, documents=None) -> RunContext:
        """Resolve columns and per-run configuration (criteria, job description)."""
        ...

    @abstractmethod
    def build_request(self, record: Record, ctx: RunContext) -> ModelRequest:
        ...

    @abstractmethod
    def parser(self, ctx: RunContext) -> ResponseParser:
        ...

    @abstractmethod
    def conclusion(self, result: ExtractedResult, ctx: RunContext) -> str:
        """Human-readable one-line summary of a successful result."""
        ...

    def label(self, record: Record) -> str:
        """Short name of the record for status messages."""
        return f'rândul {record.row}'


def get_adapter(adapters: Dict[str, Type[ModeAdapter]], mode: str) -> ModeAdapter:
    """Look up and instantiate the adapter for a mode."""
    adapter_cls = adapters.get(mode)
    if not adapter_cls:
        raise ValueError(f"No adapter registered for mode '{mode}'")
    return adapter_cls()


def get_modes_info(adapters: Dict[str, Type[ModeAdapter]]) -> Dict[str, Any]:
    """Serialize the adapter registry into a JSON-friendly dict."""
    return {
        mode: {'description': cls.description or ''}
        for mode, cls in adapters.items()
    }
