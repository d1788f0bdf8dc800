"""Tests for enricher.services.gemini — payload shape, retry/backoff and journaling."""
import pytest
from unittest.mock import MagicMock

import requests

from enricher.errors import RateLimitExhausted, TransientApiError
from enricher.models.records import ModelRequest
from enricher.services.audit_log import AuditLog, SheetLogSink
from enricher.services.gemini import GENERATION_CONFIG, ModelClient, build_payload
from enricher.services.store import MemoryStore


def _journal():
    logs = MemoryStore(name='Logs')
    return AuditLog(SheetLogSink(logs)), logs


class TestBuildPayload:

    def test_deterministic_sampling(self):
        payload = build_payload(ModelRequest('salut'), 'gemini-1.5-flash')
        assert payload['generationConfig'] == {'temperature': 0, 'topK': 1, 'topP': 1}
        assert payload['contents'][0]['parts'][0]['text'] == 'salut'
        assert payload['model'] == 'models/gemini-1.5-flash'
        assert 'tools' not in payload

    def test_search_grounding_tool(self):
        payload = build_payload(ModelRequest('x', search_grounding=True), 'm')
        assert payload['tools'] == [{'google_search_retrieval': {}}]

    def test_generation_config_not_shared(self):
        payload = build_payload(ModelRequest('x'), 'm')
        payload['generationConfig']['temperature'] = 1
        assert GENERATION_CONFIG['temperature'] == 0


class TestSendRequest:

    def test_success_first_attempt(self, make_settings, scripted_session, fake_sleep):
        session = scripted_session('Site-ul: acme.ro')
        client = ModelClient(make_settings(), session=session, sleep=fake_sleep)
        reply = client.send('prompt')

        assert reply.status_code == 200
        assert reply.attempts == 1
        assert reply.payload['candidates'][0]['content']['parts'][0]['text'] == 'Site-ul: acme.ro'
        assert fake_sleep.calls == []

    def test_posts_to_model_endpoint_with_key_header(self, make_settings, scripted_session, fake_sleep):
        session = scripted_session('ok')
        settings = make_settings()
        ModelClient(settings, session=session, sleep=fake_sleep).send('prompt')

        args, kwargs = session.post.call_args
        assert args[0] == settings.endpoint
        assert settings.model_id in args[0]
        assert kwargs['headers']['x-goog-api-key'] == 'test-key'
        assert kwargs['timeout'] == settings.timeout

    def test_429_twice_then_success(self, make_settings, scripted_session, make_response, fake_sleep):
        audit, logs = _journal()
        session = scripted_session(make_response(429, text='{}'), make_response(429, text='{}'), 'gata')
        client = ModelClient(make_settings(), session=session, sleep=fake_sleep, audit=audit)

        reply = client.send('prompt')

        assert reply.attempts == 3
        assert session.post.call_count == 3
        assert fake_sleep.calls == [2.0, 4.0]
        # Header + one journal row per attempt
        assert logs.last_row() == 4
        assert [row[6] for row in logs.rows[1:]] == [
            'Rate limited (attempt 1/3)', 'Rate limited (attempt 2/3)', 'Success',
        ]
        assert all(row[4] == 'prompt' for row in logs.rows[1:])

    def test_429_on_every_attempt_raises(self, make_settings, scripted_session, make_response, fake_sleep):
        session = scripted_session(*[make_response(429, text='{}') for _ in range(3)])
        client = ModelClient(make_settings(), session=session, sleep=fake_sleep)

        with pytest.raises(RateLimitExhausted, match='after 3 attempts'):
            client.send('prompt')
        assert fake_sleep.calls == [2.0, 4.0]

    def test_non_200_retried_then_raised(self, make_settings, scripted_session, make_response, fake_sleep):
        session = scripted_session(*[make_response(503, text='Unavailable') for _ in range(3)])
        client = ModelClient(make_settings(), session=session, sleep=fake_sleep)

        with pytest.raises(TransientApiError) as exc:
            client.send('prompt')
        assert exc.value.code == 503
        assert exc.value.body == 'Unavailable'
        assert session.post.call_count == 3

    def test_non_200_then_success(self, make_settings, scripted_session, make_response, fake_sleep):
        session = scripted_session(make_response(500, text='oops'), 'ok')
        reply = ModelClient(make_settings(), session=session, sleep=fake_sleep).send('prompt')
        assert reply.attempts == 2
        assert fake_sleep.calls == [2.0]

    def test_network_error_retried(self, make_settings, scripted_session, fake_sleep):
        session = scripted_session(requests.ConnectionError('reset'), 'ok')
        audit, logs = _journal()
        reply = ModelClient(make_settings(), session=session, sleep=fake_sleep, audit=audit).send('prompt')
        assert reply.attempts == 2
        assert logs.rows[1][6] == 'Failed: reset'

    def test_unparseable_body_raised_on_final_attempt(self, make_settings, scripted_session,
                                                      make_response, fake_sleep):
        session = scripted_session(make_response(200, text='<html>'))
        client = ModelClient(make_settings(max_attempts=1), session=session, sleep=fake_sleep)
        with pytest.raises(ValueError):
            client.send('prompt')

    def test_each_attempt_journaled_once(self, make_settings, scripted_session, make_response, fake_sleep):
        audit = MagicMock()
        session = scripted_session(make_response(500, text='x'), make_response(500, text='y'))
        client = ModelClient(make_settings(max_attempts=2), session=session, sleep=fake_sleep, audit=audit)
        with pytest.raises(TransientApiError):
            client.send('prompt')
        assert audit.interaction.call_count == 2
