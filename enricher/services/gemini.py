"""
Gemini generateContent client with bounded retry and linear backoff.

Every attempt (success or failure) is journaled to the audit log with its
prompt, raw response and a short conclusion.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from enricher.config import Settings
from enricher.errors import RateLimitExhausted, TransientApiError
from enricher.models.records import ModelReply, ModelRequest
from enricher.services.audit_log import AuditLog

logger = logging.getLogger('services.gemini')

GENERATION_CONFIG = {
    'temperature': 0,
    'topK': 1,
    'topP': 1,
}


def build_payload(request: ModelRequest, model_id: str) -> Dict[str, Any]:
    """JSON body for one generateContent call."""
    payload = {
        'contents': [{
            'parts': [{'text': request.prompt_text}],
        }],
        'model': f'models/{model_id}',
        'generationConfig': dict(GENERATION_CONFIG),
    }
    if request.search_grounding:
        payload['tools'] = [{'google_search_retrieval': {}}]
    return payload


class ModelClient:
    """
    Sends prompts to Gemini.

    Attempts are capped at settings.max_attempts; the delay before attempt
    n+1 is settings.base_delay * n seconds. HTTP 429 on the final attempt
    raises RateLimitExhausted. Any other failure (non-200 status, network
    error, unparseable body) is retried with the same backoff and re-raised
    on the final attempt.
    """

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        audit: Optional[AuditLog] = None,
    ):
        self.settings = settings
        self.session = session or requests.Session()
        self.sleep = sleep
        self.audit = audit or AuditLog()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'x-goog-api-key': self.settings.api_key,
            'Content-Type': 'application/json',
        }

    def send(self, prompt_text: str, search_grounding: bool = False) -> ModelReply:
        return self.send_request(ModelRequest(prompt_text, search_grounding=search_grounding))

    def send_request(self, request: ModelRequest) -> ModelReply:
        max_attempts = max(1, self.settings.max_attempts)
        payload = build_payload(request, self.settings.model_id)

        for attempt in range(1, max_attempts + 1):
            delay = self.settings.base_delay * attempt
            journaled = False
            try:
                response = self.session.post(
                    self.settings.endpoint,
                    headers=self.headers,
                    json=payload,
                    timeout=self.settings.timeout,
                )
                code = response.status_code
                body = response.text

                if code == 429:
                    self.audit.interaction(
                        request.prompt_text, body,
                        conclusion=f'Rate limited (attempt {attempt}/{max_attempts})',
                        message=f'Rate limit hit on attempt {attempt}', level='WARNING',
                    )
                    journaled = True
                    if attempt == max_attempts:
                        raise RateLimitExhausted(attempt)
                    self.sleep(delay)
                    continue

                if code != 200:
                    self.audit.interaction(
                        request.prompt_text, body,
                        conclusion=f'API error {code}',
                        message=f'API returned code {code} on attempt {attempt}', level='WARNING',
                    )
                    journaled = True
                    raise TransientApiError(code, body)

                data = response.json()
                self.audit.interaction(
                    request.prompt_text, body,
                    conclusion='Success',
                    message=f'API response received on attempt {attempt}', level='INFO',
                )
                return ModelReply(status_code=code, raw_text=body, payload=data, attempts=attempt)

            except RateLimitExhausted:
                raise
            except Exception as e:
                if not journaled:
                    self.audit.interaction(
                        request.prompt_text, '',
                        conclusion=f'Failed: {e}',
                        message=f'Attempt {attempt} failed', level='WARNING',
                    )
                if attempt == max_attempts:
                    logger.error("Gemini call failed after %d attempts: %s", attempt, e)
                    raise
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1fs",
                    attempt, max_attempts, e, delay,
                )
                self.sleep(delay)

        # Unreachable: the final attempt either returns or raises
        raise RateLimitExhausted(max_attempts)
