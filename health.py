from datetime import datetime

from flask import Blueprint, current_app, jsonify

health_bp = Blueprint('health', __name__)


@health_bp.route('/health')
def health_check():
    """Health check endpoint with storage backend and collection sizes"""
    store = current_app.extensions['ledger_store']
    return jsonify({
        'status': 'ok' if store.hydrated else 'starting',
        'service': 'schoolfee-ledger',
        'backend': store.persistence.name,
        'collections': store.counts(),
        'timestamp': datetime.now().isoformat(),
    })
