"""
Run routes — health check, batch run API and mode catalogue.
"""
from flask import Blueprint, request, jsonify

from enricher.models.run import BatchRun
from enricher.pipeline.base import get_modes_info
from enricher.pipeline.manager import launch_run, get_run_status
from enricher.pipeline.modes import ADAPTERS

bp = Blueprint('runs', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@bp.route('/api/modes')
def modes():
    """Available enrichment modes and their descriptions."""
    return jsonify(get_modes_info(ADAPTERS))


@bp.route('/api/runs', methods=['POST'])
def create_run():
    """Enqueue a batch run over a workbook sheet."""
    data = request.get_json(silent=True) or {}
    workbook_path = (data.get('workbook') or '').strip()
    mode = data.get('mode', 'companies')
    sheet = data.get('sheet') or None
    max_rows = data.get('max_rows')

    if not workbook_path:
        return jsonify({'error': 'workbook is required'}), 400
    if mode not in ADAPTERS:
        return jsonify({'error': f'Unsupported mode: {mode}'}), 400
    if max_rows is not None:
        try:
            max_rows = int(max_rows)
        except (TypeError, ValueError):
            return jsonify({'error': 'max_rows must be an integer'}), 400
        if max_rows < 1:
            return jsonify({'error': 'max_rows must be at least 1'}), 400

    try:
        run = launch_run(workbook_path, mode, sheet=sheet, max_rows=max_rows)
        return jsonify(run.to_dict()), 202
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bp.route('/api/runs')
def list_runs():
    limit = request.args.get('limit', 20, type=int)
    runs = BatchRun.list_recent(limit=limit)
    return jsonify([run.to_dict() for run in runs])


@bp.route('/api/runs/<run_id>')
def get_run(run_id):
    status = get_run_status(run_id)
    if not status:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(status)
