"""
Batch runner — walks data rows 2..N of one sheet through the row processor.

Structural validation happens before any row is touched. Rows are visited in
order; the run stops once `settings.max_rows` rows were successfully processed.
A live status line is kept in the header cell of the status column.
"""
import logging
import time
from typing import Callable, Optional

from enricher.config import Settings
from enricher.errors import StructuralValidationError
from enricher.pipeline.base import BatchResult, ModeAdapter, RowOutcome, RowState
from enricher.pipeline.columns import NOT_FOUND, find_header
from enricher.pipeline.processor import RowProcessor
from enricher.services.audit_log import AuditLog
from enricher.services.gemini import ModelClient
from enricher.services.store import TabularStore

logger = logging.getLogger('pipeline.runner')

STATUS_STARTED = 'Status: În procesare...'


def status_processing(label: str, row: int, last_row: int) -> str:
    return f'Status: Procesare {label}... ({row - 1}/{last_row - 1})'


def status_waiting(cooldown_seconds: float) -> str:
    minutes = cooldown_seconds / 60
    amount = f'{minutes:.0f} minute' if minutes >= 1 else f'{cooldown_seconds:.0f} secunde'
    return f'Status: Rate limit atins. Așteptăm {amount} înainte de a continua...'


_ROW_DONE_TEXT = {
    RowState.SUCCESS: 'actualizat',
    RowState.IGNORED: 'ignorat',
    RowState.INVALID: 'date invalide',
    RowState.FAILED: 'eroare',
    RowState.ABANDONED: 'abandonat',
}


def status_row_done(label: str, row: int, last_row: int, state: RowState) -> str:
    return f'Status: {label} ({row - 1}/{last_row - 1}) - {_ROW_DONE_TEXT.get(state, state.value)}'


def status_finished(processed: int, noun: str) -> str:
    return f'Status: Procesare completă. {processed} {noun} actualizate.'


class BatchRunner:
    """
    One run of one mode over one sheet.

    Usage:
        runner = BatchRunner(adapter, settings, workbook.sheet('Companii'), client,
                             workbook=workbook, audit=audit)
        result = runner.run()
    """

    def __init__(
        self,
        adapter: ModeAdapter,
        settings: Settings,
        store: TabularStore,
        client: ModelClient,
        workbook=None,
        documents=None,
        audit: Optional[AuditLog] = None,
        sleep: Callable[[float], None] = time.sleep,
        progress: Optional[Callable[[BatchResult], None]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.adapter = adapter
        self.settings = settings
        self.store = store
        self.client = client
        self.workbook = workbook
        self.documents = documents
        self.audit = audit or AuditLog()
        self.sleep = sleep
        self.progress = progress
        self.on_status = on_status
        self.status_col = NOT_FOUND

    # ── Validation ────────────────────────────────────────────────────────

    def validate_structure(self):
        """Raise StructuralValidationError when the sheet or settings cannot support a run."""
        if not self.settings.api_key:
            raise StructuralValidationError('Eroare: API Key-ul Google Gemini nu este configurat!')

        header_row = self.store.get_row(1)
        missing = [
            name for name in self.settings.mode.required_headers
            if find_header(header_row, name) == NOT_FOUND
        ]
        if missing:
            raise StructuralValidationError(
                'Eroare de structură: Lipsesc următoarele coloane: ' + ', '.join(missing)
            )

    # ── Live status ───────────────────────────────────────────────────────

    def publish(self, text: str):
        if self.on_status is not None:
            self.on_status(text)
        if self.status_col == NOT_FOUND:
            logger.info("%s", text)
            return
        self.store.set_cell(1, self.status_col, text)
        self.store.flush()

    def _on_wait(self, outcome: RowOutcome, cooldowns: int):
        self.publish(status_waiting(self.settings.cooldown_seconds))
        self.audit.warning(
            'Rate limit reached, waiting...',
            f'Row: {outcome.row}, Cooldown: {cooldowns}/{self.settings.max_cooldowns}',
        )

    # ── Run ───────────────────────────────────────────────────────────────

    def run(self) -> BatchResult:
        try:
            self.validate_structure()
            ctx = self.adapter.prepare(self.settings, self.store, self.workbook, self.documents)
        except StructuralValidationError as e:
            self.audit.error('Structure validation failed', str(e))
            raise

        processor = RowProcessor(self.adapter, ctx, self.store, self.client, audit=self.audit)
        self.status_col = processor.status_col

        last_row = self.store.last_row()
        result = BatchResult()
        self.audit.info(f'Processing rows 2 to {last_row}', f'Mode: {self.settings.mode.name}')
        self.publish(STATUS_STARTED)

        for row in range(2, last_row + 1):
            if result.processed >= self.settings.max_rows:
                result.cap_reached = True
                logger.info("Per-run cap of %d rows reached at row %d", self.settings.max_rows, row)
                break

            if processor.is_processed(row):
                self.audit.info(f'Skipping processed row {row}')
                result.add(RowOutcome(row, RowState.SKIPPED))
                continue

            label = self.adapter.label(processor.read_record(row))
            self.publish(status_processing(label, row, last_row))

            outcome = processor.run(
                row,
                self.settings.cooldown_seconds,
                self.settings.max_cooldowns,
                sleep=self.sleep,
                on_wait=self._on_wait,
            )
            result.add(outcome)
            self.publish(status_row_done(label, row, last_row, outcome.state))

            if outcome.state == RowState.SUCCESS and self.settings.inter_row_delay > 0:
                self.sleep(self.settings.inter_row_delay)

            if self.progress is not None:
                self.progress(result)

        self.publish(status_finished(result.processed, self.adapter.noun))
        self.audit.info(
            'Processing completed',
            f'Processed: {result.processed}, Skipped: {result.skipped}, Checked: {result.checked}, '
            f'Invalid: {result.invalid}, Failed: {result.failed}, Abandoned: {result.abandoned}',
        )
        return result
