"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch

import pytest

from enricher.logging_config import configure_logging, JSONFormatter


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_env_var_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_explicit_level_wins_over_env(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'DEBUG'}):
            configure_logging(level_name='warning')
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_non_level_attribute_defaults_to_info(self):
        configure_logging(level_name='basicConfig')
        assert logging.getLogger().level == logging.INFO

    def test_text_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('pipeline.runner').info("Row %d processed", 3)
        output = capsys.readouterr().err
        assert 'pipeline.runner' in output
        assert 'Row 3 processed' in output
        assert 'INFO' in output

    def test_json_format_keeps_diacritics(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('test.json').info("Procesare completă")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'INFO'
        assert parsed['logger'] == 'test.json'
        assert parsed['message'] == 'Procesare completă'
        assert 'timestamp' in parsed

    def test_json_format_includes_exception(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger('test.exc').error("failed", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())
        assert 'ValueError' in parsed['exception']

    def test_third_party_loggers_quieted_to_warning(self):
        configure_logging()
        for name in ['urllib3', 'requests', 'rq.worker', 'openpyxl']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_workbook_and_worker_chatter_suppressed(self, capsys):
        with patch.dict(os.environ, {'LOG_LEVEL': 'INFO', 'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('openpyxl.reader.excel').info("Reading workbook")
        logging.getLogger('rq.worker').info("Job OK")
        logging.getLogger('pipeline.runner').info("Processing rows 2 to 5")
        output = capsys.readouterr().err
        assert 'Reading workbook' not in output
        assert 'Job OK' not in output
        assert 'Processing rows 2 to 5' in output

    def test_json_carries_run_and_row_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('pipeline.manager').info(
            "Starting run", extra={'run_id': 'abc', 'mode': 'companies'},
        )
        logging.getLogger('pipeline.processor').error("Error processing row 7", extra={'row': 7})
        first, second = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines()]
        assert first['run_id'] == 'abc'
        assert first['mode'] == 'companies'
        assert 'row' not in first
        assert second['row'] == 7
        assert 'run_id' not in second

    def test_no_duplicate_handlers_on_repeated_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJSONFormatter:

    def test_format_basic_record(self):
        record = logging.LogRecord(
            name='test', level=logging.INFO, pathname='', lineno=0,
            msg='hello %s', args=('world',), exc_info=None,
        )
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed['message'] == 'hello world'
        assert parsed['logger'] == 'test'
