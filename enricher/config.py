"""
Centralized configuration — env vars, constants, and the per-run Settings object.

Module-level constants are read from the environment once. Pipeline components
never read them directly: a Settings instance is built at run start by
load_settings() and passed into every component.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from enricher.errors import StructuralValidationError
from enricher.pipeline import run_config


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (run tracking + RQ) ────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
RUN_JOB_TIMEOUT = int(os.getenv('RUN_JOB_TIMEOUT', '1800'))

# ── Gemini ───────────────────────────────────────────────────────────────────
GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
GEMINI_MODEL = os.getenv('GEMINI_MODEL')
GEMINI_API_URL = os.getenv(
    'GEMINI_API_URL',
    'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent',
)

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── HTTP API auth ────────────────────────────────────────────────────────────
API_TOKEN = os.getenv('API_TOKEN')

# ── Run status values ────────────────────────────────────────────────────────
RUN_STATUSES = [
    'queued',
    'running',
    'completed',
    'failed',
]


@dataclass(frozen=True)
class ModeConfig:
    """Column layout and row policy for one enrichment mode."""
    name: str
    strategy: str = 'static'                    # 'static' letters or 'dynamic' header lookup
    columns: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    required_headers: List[str] = field(default_factory=list)
    required_fields: List[str] = field(default_factory=list)
    score_fields: List[str] = field(default_factory=list)
    error_target: str = 'status'                # 'status' cell or every 'outputs' cell
    mark_invalid: bool = True
    search_grounding: bool = False
    criteria_sheet: Optional[str] = None
    job_description: str = ''


@dataclass(frozen=True)
class Settings:
    """Everything one run needs, resolved once at run start."""
    api_key: str
    mode: ModeConfig
    model_id: str = 'gemini-1.5-flash'
    api_url: str = GEMINI_API_URL
    max_attempts: int = 3
    base_delay: float = 2.0
    timeout: float = 60
    max_rows: int = 5
    inter_row_delay: float = 2.0
    cooldown_seconds: float = 120
    max_cooldowns: int = 5
    log_sheet: str = 'Logs'
    log_max_rows: int = 1000

    @property
    def endpoint(self) -> str:
        return self.api_url.format(model=self.model_id)


def build_mode_config(mode: str) -> ModeConfig:
    raw = run_config.get_mode_config(mode)
    return ModeConfig(
        name=mode,
        strategy=raw.get('strategy', 'static'),
        columns=dict(raw.get('columns') or {}),
        headers=dict(raw.get('headers') or {}),
        required_headers=list(raw.get('required_headers') or []),
        required_fields=list(raw.get('required_fields') or []),
        score_fields=list(raw.get('score_fields') or []),
        error_target=raw.get('error_target', 'status'),
        mark_invalid=bool(raw.get('mark_invalid', True)),
        search_grounding=bool(raw.get('search_grounding', False)),
        criteria_sheet=raw.get('criteria_sheet'),
        job_description=raw.get('job_description') or '',
    )


def load_settings(mode: str, api_key: str = None, **overrides) -> Settings:
    """
    Build the Settings for one run.

    Precedence: explicit keyword overrides > environment > run_config.yaml.
    Overrides with a None value are ignored so CLI/API callers can pass
    optional arguments straight through.

    Raises:
        StructuralValidationError: no API key configured.
        ValueError: unknown mode.
    """
    key = api_key or GEMINI_API_KEY
    if not key:
        raise StructuralValidationError('Eroare: API Key-ul Google Gemini nu este configurat!')

    model = run_config.get_section('model')
    batch = run_config.get_section('batch')
    log_sheet = run_config.get_section('log_sheet')

    values = dict(
        api_key=key,
        mode=build_mode_config(mode),
        model_id=GEMINI_MODEL or model.get('id', 'gemini-1.5-flash'),
        api_url=GEMINI_API_URL,
        max_attempts=int(model.get('max_attempts', 3)),
        base_delay=float(model.get('base_delay_seconds', 2.0)),
        timeout=float(model.get('timeout_seconds', 60)),
        max_rows=int(batch.get('max_rows_per_run', 5)),
        inter_row_delay=float(batch.get('inter_row_delay_seconds', 2.0)),
        cooldown_seconds=float(batch.get('rate_limit_cooldown_seconds', 120)),
        max_cooldowns=int(batch.get('max_rate_limit_cooldowns', 5)),
        log_sheet=log_sheet.get('name', 'Logs'),
        log_max_rows=int(log_sheet.get('max_rows', 1000)),
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
