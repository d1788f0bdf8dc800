"""
Notifications — Slack webhook integration for batch run events.

Notification failure never blocks a run.
"""
import logging
import requests

from enricher.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def notify_run_complete(run):
    """Post a run completion summary to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        counters = run.counters or {}
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Enrichment run completed: {run.mode}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Processed:* {counters.get('processed', 0)}"},
                    {"type": "mrkdwn", "text": f"*Skipped:* {counters.get('skipped', 0)}"},
                    {"type": "mrkdwn", "text": f"*Invalid:* {counters.get('invalid', 0)}"},
                    {"type": "mrkdwn", "text": f"*Failed:* {counters.get('failed', 0)}"},
                ]
            },
        ]

        if run.summary:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"_{run.summary}_"}
            })

        if run.cap_reached:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": "Per-run row cap reached; run again to continue."}]
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Run %s completion notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send notification for run %s", run.id[:8], exc_info=True)


def notify_run_failed(run):
    """Post a run failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        last_error = ''
        if run.errors:
            last_err = run.errors[-1]
            last_error = last_err.get('message', '') if isinstance(last_err, dict) else str(last_err)

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Enrichment run FAILED: {run.mode}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Workbook:* {run.workbook_path or 'unknown'}"},
                    {"type": "mrkdwn", "text": f"*Processed so far:* {(run.counters or {}).get('processed', 0)}"},
                ]
            },
        ]

        if last_error:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{last_error[:500]}```"}
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Run %s failure notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send failure notification for run %s", run.id[:8], exc_info=True)
