"""Tests for enricher.pipeline.manager — synchronous runs, RQ launch and job outcome recording."""
import pytest
from unittest.mock import patch, MagicMock

from enricher.config import RUN_JOB_TIMEOUT
from enricher.errors import StructuralValidationError
from enricher.pipeline.base import BatchResult
from enricher.pipeline.manager import execute_batch, launch_run, run_batch_job, summarize
from enricher.services.gemini import ModelClient
from enricher.services.store import MemoryWorkbook


class TestExecuteBatch:

    def test_runs_against_workbook_and_creates_log_sheet(self, make_settings, company_store,
                                                         scripted_session, fake_sleep):
        workbook = MemoryWorkbook()
        workbook.sheets['Companii'] = company_store([1, 'ACME'])
        client = ModelClient(make_settings(), session=scripted_session('Site-ul: acme.ro'), sleep=fake_sleep)

        result = execute_batch('ignored.xlsx', 'companies', api_key='k',
                               workbook=workbook, client=client, sleep=fake_sleep)

        assert result.processed == 1
        assert workbook.sheet('Companii').get_cell(2, 7) == 'acme.ro'
        logs = workbook.sheet('Logs')
        assert logs.rows[0][0] == 'Timestamp'
        assert logs.last_row() > 1

    def test_progress_and_status_callbacks(self, make_settings, company_store, scripted_session, fake_sleep):
        workbook = MemoryWorkbook()
        workbook.sheets['Companii'] = company_store([1, 'ACME'], [2, 'Beta'])
        client = ModelClient(make_settings(), session=scripted_session('ok', 'ok'), sleep=fake_sleep)
        progress, statuses = MagicMock(), []

        execute_batch('x.xlsx', 'companies', api_key='k', workbook=workbook, client=client,
                      sleep=fake_sleep, progress=progress, on_status=statuses.append)

        assert progress.call_count == 2
        assert statuses[-1] == 'Status: Procesare completă. 2 companii actualizate.'

    def test_missing_sheet(self, make_settings, scripted_session, fake_sleep):
        with pytest.raises(KeyError):
            execute_batch('x.xlsx', 'companies', sheet='Lipsa', api_key='k',
                          workbook=MemoryWorkbook({'Companii': []}), sleep=fake_sleep)

    def test_structural_error_still_saves_workbook(self, fake_sleep):
        workbook = MagicMock(wraps=MemoryWorkbook({'Companii': [['Nr', 'Companie']]}))
        with pytest.raises(StructuralValidationError):
            execute_batch('x.xlsx', 'companies', api_key='k', workbook=workbook, sleep=fake_sleep)
        workbook.save.assert_called_once()


class TestSummarize:

    def test_basic(self):
        assert summarize(BatchResult(processed=3, skipped=2), 'companii') == \
            '3 companii actualizate, 2 deja procesate.'

    def test_with_problems_and_cap(self):
        line = summarize(BatchResult(processed=1, invalid=1, failed=2, abandoned=1, cap_reached=True))
        assert '1 invalide' in line
        assert '2 erori' in line
        assert '1 abandonate' in line
        assert line.endswith('Limita pe rulare a fost atinsă.')


class TestLaunchRun:

    def test_enqueues_job(self, mock_redis):
        queue = MagicMock()
        with patch('enricher.pipeline.manager._get_queue', return_value=queue):
            run = launch_run('/data/firme.xlsx', 'companies', sheet='Companii', max_rows=3)

        assert run.status == 'queued'
        assert run.max_rows == 3
        queue.enqueue.assert_called_once_with(run_batch_job, run.id, job_timeout=RUN_JOB_TIMEOUT)
        assert mock_redis.setex.called

    def test_unknown_mode_not_enqueued(self, mock_redis):
        queue = MagicMock()
        with patch('enricher.pipeline.manager._get_queue', return_value=queue):
            with pytest.raises(ValueError):
                launch_run('/data/firme.xlsx', 'invoices')
        queue.enqueue.assert_not_called()


class TestRunBatchJob:

    @patch('enricher.pipeline.manager.notify_run_complete')
    @patch('enricher.pipeline.manager.execute_batch')
    @patch('enricher.pipeline.manager.BatchRun')
    def test_success_path(self, mock_run_cls, mock_execute, mock_notify, make_run):
        run = make_run()
        mock_run_cls.load.return_value = run
        mock_execute.return_value = BatchResult(processed=2, errors=['Row 4: boom'])

        run_batch_job('run-test-001')

        run.start.assert_called_once()
        kwargs = mock_execute.call_args[1]
        assert kwargs['progress'] is run.update_progress
        assert kwargs['on_status'] is run.set_live_status
        run.complete.assert_called_once_with('2 companii actualizate, 0 deja procesate.')
        assert run.errors[0]['message'] == 'Row 4: boom'
        mock_notify.assert_called_once_with(run)

    @patch('enricher.pipeline.manager.notify_run_failed')
    @patch('enricher.pipeline.manager.execute_batch')
    @patch('enricher.pipeline.manager.BatchRun')
    def test_structural_error_fails_run(self, mock_run_cls, mock_execute, mock_notify, make_run):
        run = make_run()
        mock_run_cls.load.return_value = run
        mock_execute.side_effect = StructuralValidationError('Eroare de structură: Lipsesc următoarele coloane: CUI')

        run_batch_job('run-test-001')

        run.fail.assert_called_once_with('Eroare de structură: Lipsesc următoarele coloane: CUI')
        run.complete.assert_not_called()
        mock_notify.assert_called_once_with(run)

    @patch('enricher.pipeline.manager.notify_run_failed')
    @patch('enricher.pipeline.manager.execute_batch', side_effect=FileNotFoundError('firme.xlsx'))
    @patch('enricher.pipeline.manager.BatchRun')
    def test_unexpected_error_fails_run(self, mock_run_cls, mock_execute, mock_notify, make_run):
        run = make_run()
        mock_run_cls.load.return_value = run

        run_batch_job('run-test-001')

        assert run.fail.call_args[0][0].startswith('Run failed:')
        mock_notify.assert_called_once()

    @patch('enricher.pipeline.manager.execute_batch')
    @patch('enricher.pipeline.manager.BatchRun')
    def test_missing_run(self, mock_run_cls, mock_execute):
        mock_run_cls.load.return_value = None
        run_batch_job('gone')
        mock_execute.assert_not_called()
