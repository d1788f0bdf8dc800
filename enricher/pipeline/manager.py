"""
Run manager — wires settings, workbook, audit log, model client and adapter
into a BatchRunner.

execute_batch() runs synchronously (CLI). launch_run() records a BatchRun in
Redis and enqueues run_batch_job() on RQ (HTTP API).
"""
import logging
import time
from typing import Callable, Optional

from enricher.config import RUN_JOB_TIMEOUT, load_settings
from enricher.errors import StructuralValidationError
from enricher.models.run import BatchRun
from enricher.pipeline.base import BatchResult, get_adapter
from enricher.pipeline.modes import ADAPTERS
from enricher.pipeline.runner import BatchRunner
from enricher.services.audit_log import AuditLog, SheetLogSink
from enricher.services.documents import DocumentSource
from enricher.services.gemini import ModelClient
from enricher.services.notifications import notify_run_complete, notify_run_failed
from enricher.services.store import Workbook

logger = logging.getLogger('pipeline.manager')


# ── Lazy RQ queue (avoids import-time Redis connection for CLI runs) ──────

_queue = None

def _get_queue():
    global _queue
    if _queue is None:
        from enricher.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


# ── Synchronous execution ─────────────────────────────────────────────────────

def execute_batch(
    workbook_path: str,
    mode: str,
    sheet: Optional[str] = None,
    max_rows: Optional[int] = None,
    api_key: Optional[str] = None,
    progress: Optional[Callable[[BatchResult], None]] = None,
    on_status: Optional[Callable[[str], None]] = None,
    workbook=None,
    client: Optional[ModelClient] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchResult:
    """
    Run one batch over a workbook sheet and save the workbook.

    Raises:
        StructuralValidationError: missing API key, columns or configuration sheet.
        ValueError: unknown mode.
        KeyError: the named data sheet does not exist.
    """
    settings = load_settings(mode, api_key=api_key, max_rows=max_rows)
    adapter = get_adapter(ADAPTERS, mode)

    workbook = workbook or Workbook(workbook_path)
    store = workbook.sheet(sheet)
    audit = AuditLog(SheetLogSink(
        workbook.sheet(settings.log_sheet, create=True),
        max_rows=settings.log_max_rows,
    ))
    client = client or ModelClient(settings, sleep=sleep, audit=audit)

    runner = BatchRunner(
        adapter, settings, store, client,
        workbook=workbook,
        documents=DocumentSource(),
        audit=audit,
        sleep=sleep,
        progress=progress,
        on_status=on_status,
    )
    try:
        return runner.run()
    finally:
        workbook.save()


def summarize(result: BatchResult, noun: str = 'rânduri') -> str:
    """One-line human summary of a finished batch."""
    parts = [f'{result.processed} {noun} actualizate', f'{result.skipped} deja procesate']
    if result.invalid:
        parts.append(f'{result.invalid} invalide')
    if result.failed:
        parts.append(f'{result.failed} erori')
    if result.abandoned:
        parts.append(f'{result.abandoned} abandonate')
    line = ', '.join(parts) + '.'
    if result.cap_reached:
        line += ' Limita pe rulare a fost atinsă.'
    return line


# ── Background runs ───────────────────────────────────────────────────────────

def launch_run(workbook_path: str, mode: str, sheet: str = None, max_rows: int = None) -> BatchRun:
    """
    Create a new BatchRun and enqueue it as a background RQ job.

    Raises ValueError for an unsupported mode before anything is enqueued.
    """
    if mode not in ADAPTERS:
        raise ValueError(f"Unsupported mode: {mode}. Available: {sorted(ADAPTERS)}")

    run = BatchRun(mode=mode, workbook_path=workbook_path, sheet=sheet, max_rows=max_rows)
    run.save()

    _get_queue().enqueue(run_batch_job, run.id, job_timeout=RUN_JOB_TIMEOUT)
    logger.info("Enqueued run %s (mode=%s, workbook=%s)", run.id, mode, workbook_path)
    return run


def get_run_status(run_id: str) -> Optional[dict]:
    run = BatchRun.load(run_id)
    if not run:
        return None
    return run.to_dict()


def run_batch_job(run_id: str):
    """RQ entry point: execute a queued BatchRun and record the outcome."""
    run = BatchRun.load(run_id)
    if not run:
        logger.error("Run %s not found", run_id)
        return

    context = {'run_id': run_id, 'mode': run.mode}
    logger.info("Starting run %s (mode=%s)", run_id, run.mode, extra=context)
    run.start()

    try:
        result = execute_batch(
            run.workbook_path, run.mode,
            sheet=run.sheet,
            max_rows=run.max_rows,
            progress=run.update_progress,
            on_status=run.set_live_status,
        )
    except StructuralValidationError as e:
        logger.error("Run %s aborted: %s", run_id, e, extra=context)
        run.fail(str(e))
        notify_run_failed(run)
        return
    except Exception as e:
        logger.error("Run %s FAILED: %s", run_id, e, exc_info=True, extra=context)
        run.fail(f'Run failed: {e}')
        notify_run_failed(run)
        return

    run.update_progress(result)
    for message in result.errors:
        run.errors.append({'message': message, 'row': None, 'timestamp': run.updated_at})
    run.complete(summarize(result, get_adapter(ADAPTERS, run.mode).noun))
    notify_run_complete(run)
    logger.info(
        "Run %s completed: processed=%d, skipped=%d", run_id, result.processed, result.skipped, extra=context,
    )
