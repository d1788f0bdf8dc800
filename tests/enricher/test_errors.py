"""Tests for enricher.errors — rate-limit classification and messages."""
import pytest

from enricher.errors import (
    DocumentFetchError, InvalidRecordError, RateLimitExhausted, TransientApiError, is_rate_limit_error,
)


@pytest.mark.parametrize('error, expected', [
    (RateLimitExhausted(3), True),
    (Exception('Rate Limit exceeded'), True),
    (Exception('status: RESOURCE_EXHAUSTED'), True),
    (TransientApiError(500, 'Internal'), False),
    (ValueError('bad json'), False),
])
def test_is_rate_limit_error(error, expected):
    assert is_rate_limit_error(error) is expected


def test_transient_error_truncates_body():
    error = TransientApiError(503, 'x' * 1000)
    assert error.code == 503
    assert len(str(error)) < 600


def test_invalid_record_lists_fields():
    assert str(InvalidRecordError(['linkedinProfile'])) == 'Missing required fields: linkedinProfile'


def test_document_fetch_error_message():
    assert str(DocumentFetchError('https://x.ro')) == 'URL inaccesibil sau invalid: https://x.ro'
    assert '(404)' in str(DocumentFetchError('https://x.ro', '404'))
