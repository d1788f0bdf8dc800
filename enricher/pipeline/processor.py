"""
Row processing — one row's read → validate → prompt → call → parse → write cycle.

States per row:
    Unprocessed → Skipped
                → Ignored / Invalid            (blank required input, no API call)
                → Success
                → RateLimited → (cooldown, same row again) → ... → Abandoned
                → Failed                       (permanent, batch continues)

RowProcessor.process() makes exactly one attempt. retry_row_on_rate_limit()
wraps it with the cooldown policy, so the batch loop never rewinds its cursor.
"""
import logging
import time
from typing import Callable, Optional

from enricher.errors import InvalidRecordError, is_rate_limit_error
from enricher.models.records import ExtractedResult, Record
from enricher.pipeline.base import ModeAdapter, RowOutcome, RowState, RunContext
from enricher.pipeline.columns import NOT_FOUND, Field
from enricher.services.audit_log import AuditLog
from enricher.services.gemini import ModelClient
from enricher.services.store import TabularStore

logger = logging.getLogger('pipeline.processor')

INVALID_STATUS = 'Date invalide sau incomplete'
SUCCESS_STATUS = 'Procesat'


def is_blank(value) -> bool:
    return value is None or str(value).strip() == ''


def format_cell_value(value):
    """Lists (recommendations) become one '- item' line each."""
    if isinstance(value, (list, tuple)):
        return '\n'.join(f'- {item}' for item in value)
    return value


def error_text(error: Exception) -> str:
    message = str(error)
    return message if 'code' in message else f'Error: {message}'


class RowProcessor:
    """Processes single rows of one store for one run."""

    def __init__(
        self,
        adapter: ModeAdapter,
        ctx: RunContext,
        store: TabularStore,
        client: ModelClient,
        audit: Optional[AuditLog] = None,
    ):
        self.adapter = adapter
        self.ctx = ctx
        self.store = store
        self.client = client
        self.audit = audit or AuditLog()
        self.parser = adapter.parser(ctx)
        self.mode = ctx.settings.mode

        columns = ctx.columns
        self.status_col = columns.resolve(Field.STATUS) if columns.has(Field.STATUS) else NOT_FOUND
        self.score_cols = [columns.resolve(f) for f in ctx.score_fields if columns.has(f)]
        self.input_cols = {f: columns.resolve(f) for f in ctx.input_fields if columns.has(f)}
        self.output_cols = {f: columns.resolve(f) for f in ctx.output_fields if columns.has(f)}
        self.conclusion_col = columns.resolve(Field.CONCLUSION) if columns.has(Field.CONCLUSION) else NOT_FOUND

    # ── Reads ─────────────────────────────────────────────────────────────

    def is_processed(self, row: int) -> bool:
        """A row is processed iff every designated output-score cell is non-empty."""
        if not self.score_cols:
            return False
        return all(not is_blank(self.store.get_cell(row, col)) for col in self.score_cols)

    def read_record(self, row: int) -> Record:
        values = self.store.get_row(row)
        record = Record(row=row)
        for name, col in self.input_cols.items():
            record.values[name] = values[col - 1] if col <= len(values) else None
        return record

    # ── Writes ────────────────────────────────────────────────────────────

    def set_status(self, row: int, text: str, error: bool = False):
        if self.status_col == NOT_FOUND:
            logger.warning("No status column; row %d status not written: %s", row, text)
            return
        self.store.set_cell(row, self.status_col, text, error=error)

    def write_result(self, row: int, result: ExtractedResult, conclusion: str):
        for name, col in self.output_cols.items():
            if name == Field.CONCLUSION.value:
                continue
            self.store.set_cell(row, col, format_cell_value(result.get(name)))
        if self.conclusion_col != NOT_FOUND:
            self.store.set_cell(row, self.conclusion_col, conclusion)
        # Modes that render errors into the outputs keep their status column for the live run status only
        if self.mode.error_target == 'status':
            self.set_status(row, SUCCESS_STATUS if self.conclusion_col != NOT_FOUND else f'{SUCCESS_STATUS}: {conclusion}')
        self.store.flush()

    def write_error(self, row: int, text: str):
        """Render a permanent failure visibly, in the status cell or every output cell."""
        if self.mode.error_target == 'outputs':
            for col in self.score_cols:
                self.store.set_cell(row, col, text, error=True)
        else:
            self.set_status(row, text, error=True)
        self.store.flush()

    # ── Processing ────────────────────────────────────────────────────────

    def process(self, row: int) -> RowOutcome:
        """One attempt at one row. Never raises for row-level failures."""
        if self.is_processed(row):
            logger.info("Skipping processed row %d", row)
            return RowOutcome(row, RowState.SKIPPED)

        record = self.read_record(row)
        label = self.adapter.label(record)

        missing = record.missing(self.mode.required_fields)
        if missing:
            invalid = InvalidRecordError(missing)
            if not self.mode.mark_invalid:
                logger.debug("Row %d ignored: %s", row, invalid)
                return RowOutcome(row, RowState.IGNORED, label, str(invalid))
            self.audit.warning(f'Invalid row {row}', str(invalid))
            self.set_status(row, INVALID_STATUS, error=True)
            self.store.flush()
            return RowOutcome(row, RowState.INVALID, label, str(invalid))

        try:
            self.audit.info(f'Processing: {label}', f'Row: {row}')
            request = self.adapter.build_request(record, self.ctx)
            reply = self.client.send_request(request)
            result = self.parser.parse(reply.payload)
            conclusion = self.adapter.conclusion(result, self.ctx)
            self.write_result(row, result, conclusion)
            # The client already journaled the prompt and reply of each attempt
            self.audit.info(
                f'Successfully processed {label}',
                f'Row: {row}, Conclusion: {conclusion}, Missing: {", ".join(result.missing) or "-"}',
            )
            return RowOutcome(row, RowState.SUCCESS, label, conclusion, result=result)

        except Exception as e:
            if is_rate_limit_error(e):
                self.audit.warning(f'Rate limit reached while processing {label}', f'Row: {row}, Error: {e}')
                return RowOutcome(row, RowState.RATE_LIMITED, label, str(e))

            logger.error("Error processing row %d (%s)", row, label, exc_info=True, extra={'row': row})
            self.audit.error(f'Error processing {label}', f'Row: {row}, Error: {e}')
            text = error_text(e)
            self.write_error(row, text)
            return RowOutcome(row, RowState.FAILED, label, text)

    def abandon(self, outcome: RowOutcome) -> RowOutcome:
        text = f'Abandonat: rate limit persistent după {outcome.cooldowns} pauze ({outcome.message})'
        self.audit.error(f'Abandoned {outcome.label}', f'Row: {outcome.row}, {text}')
        self.set_status(outcome.row, text, error=True)
        self.store.flush()
        return RowOutcome(outcome.row, RowState.ABANDONED, outcome.label, text, cooldowns=outcome.cooldowns)

    def run(self, row: int, cooldown_seconds: float, max_cooldowns: int,
            sleep: Callable[[float], None] = time.sleep,
            on_wait: Callable[[RowOutcome, int], None] = None) -> RowOutcome:
        """Process `row`, cooling down and retrying it while rate limited."""
        outcome = retry_row_on_rate_limit(
            self.process, row, cooldown_seconds, max_cooldowns, sleep=sleep, on_wait=on_wait,
        )
        if outcome.state == RowState.RATE_LIMITED:
            return self.abandon(outcome)
        return outcome


def retry_row_on_rate_limit(
    process: Callable[[int], RowOutcome],
    row: int,
    cooldown_seconds: float,
    max_cooldowns: int,
    sleep: Callable[[float], None] = time.sleep,
    on_wait: Callable[[RowOutcome, int], None] = None,
) -> RowOutcome:
    """
    Call process(row) until it is not rate limited or max_cooldowns pauses are used up.

    Returns the last outcome. A RATE_LIMITED outcome means the cooldowns ran out;
    its `cooldowns` field holds how many pauses were taken.
    """
    cooldowns = 0
    while True:
        outcome = process(row)
        outcome.cooldowns = cooldowns
        if outcome.state != RowState.RATE_LIMITED or cooldowns >= max_cooldowns:
            return outcome
        cooldowns += 1
        logger.warning(
            "Row %d rate limited; cooldown %d/%d for %.0fs",
            row, cooldowns, max_cooldowns, cooldown_seconds,
        )
        if on_wait is not None:
            on_wait(outcome, cooldowns)
        sleep(cooldown_seconds)
