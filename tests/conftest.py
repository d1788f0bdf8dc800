"""Shared test fixtures."""
import json

import pytest
from unittest.mock import patch, MagicMock

from enricher.pipeline import run_config
from enricher.services.store import MemoryStore, MemoryWorkbook


COMPANY_HEADER = [
    'Nr', 'Companie', 'Domeniu', 'Oraș', 'Contact',
    'CUI', 'Website', 'Cifra afaceri (2023)', 'Profit', 'Nr. angajati', '',
]


@pytest.fixture(autouse=True)
def _reset_run_config():
    """Each test sees a freshly loaded run_config.yaml."""
    run_config.reset_cache()
    yield
    run_config.reset_cache()


@pytest.fixture
def fake_sleep():
    """A sleep() stand-in that records requested delays instead of waiting."""
    calls = []

    def _sleep(seconds):
        calls.append(seconds)
    _sleep.calls = calls
    return _sleep


@pytest.fixture
def make_settings():
    """Factory fixture — Settings for a mode with a test API key and zero pacing."""
    from enricher.config import load_settings

    def _make(mode='companies', **overrides):
        overrides.setdefault('inter_row_delay', 0)
        return load_settings(mode, api_key='test-key', **overrides)
    return _make


def gemini_payload(text):
    """generateContent JSON body carrying `text` as the reply."""
    return {
        'candidates': [{
            'content': {'parts': [{'text': text}], 'role': 'model'},
            'finishReason': 'STOP',
        }],
    }


def http_response(status_code=200, payload=None, text=None):
    """MagicMock that looks like a requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    if payload is not None:
        resp.text = json.dumps(payload)
        resp.json.return_value = payload
    else:
        resp.text = text or ''
        resp.json.side_effect = ValueError('No JSON object could be decoded')
    return resp


@pytest.fixture
def reply_payload():
    return gemini_payload


@pytest.fixture
def make_response():
    return http_response


@pytest.fixture
def scripted_session():
    """
    Factory fixture — a requests.Session mock whose post() returns the given
    responses in order. Plain strings become 200 replies carrying that text.
    """
    def _make(*responses):
        session = MagicMock()
        session.post.side_effect = [
            http_response(200, gemini_payload(r)) if isinstance(r, str) else r
            for r in responses
        ]
        return session
    return _make


@pytest.fixture
def company_store():
    """Company sheet: header + rows as given, padded to the header width."""
    def _make(*rows):
        data = [list(COMPANY_HEADER)]
        for row in rows:
            data.append(list(row) + [None] * (len(COMPANY_HEADER) - len(row)))
        return MemoryStore(data, name='Companii')
    return _make


@pytest.fixture
def log_store():
    return MemoryStore(name='Logs')


@pytest.fixture
def memory_workbook():
    def _make(sheets):
        return MemoryWorkbook(sheets)
    return _make


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.setex.return_value = True
    mock.zadd.return_value = 1
    mock.zrevrange.return_value = []
    with patch('enricher.extensions.redis_client', mock), \
            patch('enricher.models.run.r', mock):
        yield mock


@pytest.fixture
def app():
    """Flask test app."""
    from enricher import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_run():
    """Factory fixture — builds a BatchRun-like MagicMock without touching Redis."""
    def _make(**overrides):
        defaults = dict(
            id='run-test-001',
            mode='companies',
            status='queued',
            workbook_path='/data/firme.xlsx',
            sheet=None,
            max_rows=None,
            created_at='2026-01-15T10:00:00',
            counters={'processed': 0, 'skipped': 0, 'checked': 0,
                      'invalid': 0, 'failed': 0, 'abandoned': 0},
            cap_reached=False,
            live_status='',
            errors=[],
            summary='',
        )
        defaults.update(overrides)
        run = MagicMock()
        for k, v in defaults.items():
            setattr(run, k, v)
        return run
    return _make
