"""
Append-only audit log — run events and every model interaction, kept in a sheet.

Entries are (timestamp, level, message, details, prompt, response, conclusion).
The sheet is capped at max_rows; the oldest entries are pruned first. The
pipeline never reads this log back. Sink failures are reported through
`logging` and never interrupt a run.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from enricher.services.store import TabularStore

logger = logging.getLogger('services.audit_log')

HEADER = ['Timestamp', 'Level', 'Message', 'Details', 'Prompt', 'Response', 'Concluzie']

# Excel rejects cell text longer than 32767 characters
MAX_CELL_CHARS = 32000

_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
}


def _clip(value) -> str:
    if value is None:
        return ''
    text = str(value)
    if len(text) > MAX_CELL_CHARS:
        return text[:MAX_CELL_CHARS] + '…'
    return text


class SheetLogSink:
    """Writes log rows into a TabularStore, creating the header row on first use."""

    def __init__(self, store: TabularStore, max_rows: int = 1000):
        self.store = store
        self.max_rows = max_rows
        self._header_checked = False

    def _ensure_header(self):
        if self._header_checked:
            return
        if self.store.last_row() == 0:
            self.store.append_row(HEADER)
        self._header_checked = True

    def append(self, timestamp, level, message, details='', prompt=None, response=None, conclusion=None):
        try:
            self._ensure_header()
            self.store.append_row([
                timestamp, level, _clip(message), _clip(details),
                _clip(prompt), _clip(response), _clip(conclusion),
            ])
            current = self.store.last_row()
            if current > self.max_rows:
                self.store.delete_rows(2, current - self.max_rows)
        except Exception:
            logger.error("Failed to append audit log entry: %s", message, exc_info=True)


class AuditLog:
    """
    Run-level journal: mirrors each entry to `logging` and appends it to a sink.

    Usage:
        audit = AuditLog(SheetLogSink(workbook.sheet('Logs', create=True)))
        audit.info('Processing company: ACME', details='Row: 3')
        audit.interaction(prompt, response_text, conclusion='Success')
    """

    def __init__(self, sink: Optional[SheetLogSink] = None, name: str = 'audit'):
        self.sink = sink
        self._logger = logging.getLogger(name)

    def record(self, level: str, message: str, details: str = '',
               prompt: str = None, response: str = None, conclusion: str = None):
        level = level.upper()
        if details:
            self._logger.log(_LEVELS.get(level, logging.INFO), "%s | %s", message, details)
        else:
            self._logger.log(_LEVELS.get(level, logging.INFO), "%s", message)
        if self.sink is not None:
            timestamp = datetime.now(timezone.utc).isoformat()
            self.sink.append(timestamp, level, message, details, prompt, response, conclusion)

    def debug(self, message, details=''):
        self.record('DEBUG', message, details)

    def info(self, message, details=''):
        self.record('INFO', message, details)

    def warning(self, message, details=''):
        self.record('WARNING', message, details)

    def error(self, message, details=''):
        self.record('ERROR', message, details)

    def interaction(self, prompt: str, response: str, conclusion: str,
                    message: str = 'Model interaction', level: str = 'INFO', details: str = ''):
        """Journal one model attempt with its prompt, raw response and derived conclusion."""
        self.record(level, message, details, prompt=prompt, response=response, conclusion=conclusion)
