"""
Flask application factory.

Creates and configures the Flask app and registers the run blueprint.
"""
import hmac

from flask import Flask, request, jsonify


def create_app():
    """Create and configure the Flask application."""
    from enricher.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # ── Optional bearer-token auth ──────────────────────────────────────
    from enricher.config import API_TOKEN

    OPEN_PATHS = {'/health'}

    @app.before_request
    def require_token():
        if not API_TOKEN:
            return  # No token set, open access (local dev)
        if request.path in OPEN_PATHS:
            return
        header = request.headers.get('Authorization', '')
        token = header[7:] if header.startswith('Bearer ') else ''
        if token and hmac.compare_digest(token, API_TOKEN):
            return
        return jsonify({'error': 'Unauthorized'}), 401

    from enricher.routes.runs import bp as runs_bp
    app.register_blueprint(runs_bp)

    return app
