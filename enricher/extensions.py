"""
Shared client instances — Redis for run tracking and the RQ queue.

redis.from_url() connects lazily, so importing this module is always safe
(even when no Redis server is reachable during tests).
"""
import logging
import redis

from enricher.config import REDIS_URL

logger = logging.getLogger('enricher.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)
