import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify

import queries

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)


@health_bp.route('/health')
def health_check():
    """Liveness endpoint for the hosting platform"""
    return jsonify({
        'status': 'ok',
        'service': 'ella-rises',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })


@health_bp.route('/healthz')
def healthz():
    """Readiness check: the database must answer a trivial query."""
    try:
        queries.ping_database()
    except Exception:
        logger.exception("Database health check failed")
        return 'db error', 500
    return 'ok'
