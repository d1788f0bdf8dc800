"""
BatchRun model — Redis-backed tracking of background enrichment runs.

A BatchRun is one BatchRunner invocation over one workbook sheet, launched
through the HTTP API and executed by an RQ worker.
"""
import json
import uuid
from datetime import datetime
from typing import Dict, Optional, List

from enricher.extensions import redis_client as r


RUN_TTL = 86400 * 7  # 7 days

_COUNTERS = ('processed', 'skipped', 'checked', 'invalid', 'failed', 'abandoned')


class BatchRun:
    """
    Redis-backed run record.

    Keys:
        batch_run:{id}    → JSON blob of run state
        batch_runs:list   → sorted set of run IDs by creation time
    """

    def __init__(
        self,
        id: str = None,
        status: str = 'queued',
        mode: str = 'companies',
        workbook_path: str = '',
        sheet: str = None,
        max_rows: int = None,
    ):
        self.id = id or str(uuid.uuid4())
        self.status = status
        self.mode = mode
        self.workbook_path = workbook_path
        self.sheet = sheet
        self.max_rows = max_rows
        self.created_at = datetime.now().isoformat()
        self.updated_at = self.created_at
        self.counters = {name: 0 for name in _COUNTERS}
        self.cap_reached = False
        self.live_status = ''
        self.errors: List[Dict] = []
        self.summary = ''

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'status': self.status,
            'mode': self.mode,
            'workbook_path': self.workbook_path,
            'sheet': self.sheet,
            'max_rows': self.max_rows,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'counters': self.counters,
            'cap_reached': self.cap_reached,
            'live_status': self.live_status,
            'errors': self.errors[-20:],  # Keep last 20 errors
            'summary': self.summary,
        }

    def save(self):
        """Persist run state to Redis."""
        self.updated_at = datetime.now().isoformat()
        r.setex(f'batch_run:{self.id}', RUN_TTL, json.dumps(self.to_dict()))
        r.zadd('batch_runs:list', {self.id: datetime.fromisoformat(self.created_at).timestamp()})
        return self

    def update_progress(self, result):
        """Copy a BatchResult's counters onto the run and save."""
        for name in _COUNTERS:
            self.counters[name] = getattr(result, name, 0)
        self.cap_reached = bool(getattr(result, 'cap_reached', False))
        self.save()

    def set_live_status(self, text: str):
        """Mirror the sheet's live status line for API polling."""
        self.live_status = text
        self.save()

    def start(self):
        self.status = 'running'
        self.save()

    def add_error(self, message: str, row: int = None):
        self.errors.append({
            'message': message,
            'row': row,
            'timestamp': datetime.now().isoformat(),
        })
        self.save()

    def complete(self, summary: str = ''):
        """Mark run as completed."""
        self.status = 'completed'
        if summary:
            self.summary = summary
        self.save()

    def fail(self, reason: str = ''):
        """Mark run as failed."""
        self.status = 'failed'
        if reason:
            self.add_error(reason)
        self.save()

    @classmethod
    def load(cls, run_id: str) -> Optional['BatchRun']:
        data = r.get(f'batch_run:{run_id}')
        if not data:
            return None
        d = json.loads(data)
        run = cls.__new__(cls)
        run.id = d['id']
        run.status = d['status']
        run.mode = d.get('mode', 'companies')
        run.workbook_path = d.get('workbook_path', '')
        run.sheet = d.get('sheet')
        run.max_rows = d.get('max_rows')
        run.created_at = d['created_at']
        run.updated_at = d.get('updated_at', run.created_at)
        run.counters = {name: d.get('counters', {}).get(name, 0) for name in _COUNTERS}
        run.cap_reached = d.get('cap_reached', False)
        run.live_status = d.get('live_status', '')
        run.errors = d.get('errors', [])
        run.summary = d.get('summary', '')
        return run

    @classmethod
    def list_recent(cls, limit: int = 20) -> List['BatchRun']:
        runs = []
        for run_id in r.zrevrange('batch_runs:list', 0, limit - 1):
            run = cls.load(run_id)
            if run:
                runs.append(run)
        return runs
