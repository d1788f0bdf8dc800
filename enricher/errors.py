"""
Error taxonomy for the enrichment pipeline.

Only StructuralValidationError halts a whole run. Every other error is caught
at the row boundary, written into the row's status and journaled.
"""


class EnrichmentError(Exception):
    """Base class for all pipeline errors."""


class StructuralValidationError(EnrichmentError):
    """Missing columns, API key or configuration sheet — aborts before any row is touched."""


class InvalidRecordError(EnrichmentError):
    """A row lacks one or more required input fields."""
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class RateLimitError(EnrichmentError):
    """The API signalled rate limiting (HTTP 429 or RESOURCE_EXHAUSTED)."""


class RateLimitExhausted(RateLimitError):
    """Every attempt inside the model client hit the rate limit."""
    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__(f"Rate limit exceeded after {attempts} attempts")


class TransientApiError(EnrichmentError):
    """Non-200, non-429 API response. Carries the response body as diagnostic text."""
    def __init__(self, code, body=''):
        self.code = code
        self.body = body
        super().__init__(f"API returned code {code}: {body[:500]}")


class MalformedReplyError(EnrichmentError):
    """Reply lacks the candidates/content/parts payload entirely."""


class DocumentFetchError(EnrichmentError):
    """A configured document URL could not be downloaded."""
    def __init__(self, url, reason=''):
        self.url = url
        self.reason = reason
        super().__init__(f"URL inaccesibil sau invalid: {url}" + (f" ({reason})" if reason else ''))


def is_rate_limit_error(error: Exception) -> bool:
    """True when the error should trigger the cooldown-and-retry-this-row path."""
    if isinstance(error, RateLimitError):
        return True
    message = str(error).lower()
    return 'rate limit' in message or 'resource_exhausted' in message
