"""
Run configuration loader — model, batch pacing, log retention and mode layouts.

YAML file with in-memory cache and hardcoded fallback if the file is missing.
"""
import copy
import logging
import os
from typing import Dict, Any

import yaml

logger = logging.getLogger('pipeline.run_config')


_run_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'model': {
            'id': 'gemini-1.5-flash',
            'max_attempts': 3,
            'base_delay_seconds': 2.0,
            'timeout_seconds': 60,
        },
        'batch': {
            'max_rows_per_run': 5,
            'inter_row_delay_seconds': 2.0,
            'rate_limit_cooldown_seconds': 120,
            'max_rate_limit_cooldowns': 5,
        },
        'log_sheet': {'name': 'Logs', 'max_rows': 1000},
        'modes': {
            'companies': {
                'strategy': 'static',
                'columns': {
                    'companyName': 'B', 'cui': 'F', 'website': 'G',
                    'revenue': 'H', 'profit': 'I', 'employees': 'J', 'status': 'K',
                },
                'required_headers': [
                    'Companie', 'Website', 'Cifra afaceri (2023)',
                    'Profit', 'Nr. angajati', 'CUI',
                ],
                'required_fields': ['companyName'],
                'score_fields': ['cui', 'website', 'revenue', 'profit', 'employees'],
                'error_target': 'outputs',
                'mark_invalid': False,
                'search_grounding': True,
            },
        },
    }


def load_run_config() -> Dict[str, Any]:
    """Load run config from YAML, with in-memory cache and hardcoded fallback."""
    global _run_config
    if _run_config is not None:
        return _run_config

    config_path = os.path.join(os.path.dirname(__file__), 'run_config.yaml')
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            _run_config = yaml.safe_load(f)
        logger.info("Config loaded from YAML (version=%s)", _run_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _run_config = _default_config()

    return _run_config


def get_section(name: str) -> Dict[str, Any]:
    """Return a top-level section (model, batch, log_sheet) or an empty dict."""
    return load_run_config().get(name, {}) or {}


def get_mode_config(mode: str) -> Dict[str, Any]:
    """Return a copy of one mode's layout block. Raises ValueError for unknown modes."""
    modes = load_run_config().get('modes', {}) or {}
    if mode not in modes:
        raise ValueError(f"Unsupported mode: {mode}. Available: {sorted(modes)}")
    return copy.deepcopy(modes[mode])


def reset_cache():
    """Reset the in-memory cache (useful for testing)."""
    global _run_config
    _run_config = None
