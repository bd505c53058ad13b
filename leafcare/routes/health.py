# =============================================================================
# LeafCare API
# routes/health.py - Aggregate Health Route
#
# Combines the classifier and recommendation-store health probes.
# =============================================================================

import time
from datetime import datetime, timezone
from flask import Blueprint, jsonify, current_app

from ..constants import ROLE_ADMIN
from ..decorators import roles_required

# Create blueprint
health_bp = Blueprint('health', __name__)

STARTED_AT = time.monotonic()


def overall_status(classifier_status, recommendations_status):
    if classifier_status == 'healthy' and recommendations_status == 'healthy':
        return 'healthy'
    if 'degraded' in (classifier_status, recommendations_status):
        return 'degraded'
    return 'unhealthy'


@health_bp.route('/health', methods=['GET'])
@roles_required(ROLE_ADMIN)
async def system_health():
    """
    Overall system health (admin only).

    Returns:
        200: status, uptime, environment and per-service detail
    """
    classifier_ok = await current_app.config['CLASSIFIER_SERVICE'].health_check()
    classifier_status = 'healthy' if classifier_ok else 'degraded'
    recommendations = current_app.config['RECOMMENDATION_SERVICE'].health()

    return jsonify({
        'status': overall_status(classifier_status, recommendations['status']),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'uptime': round(time.monotonic() - STARTED_AT, 3),
        'environment': current_app.config.get('ENV_NAME', 'development'),
        'version': current_app.config.get('API_VERSION', '1.0.0'),
        'services': {
            'mlApi': {
                'status': classifier_status,
                'available': classifier_ok
            },
            'recommendations': recommendations
        }
    })


@health_bp.route('/', methods=['GET'])
def index():
    """Service banner."""
    return jsonify({
        'name': 'LeafCare API',
        'description': 'Angular leaf spot detection and treatment recommendations',
        'version': current_app.config.get('API_VERSION', '1.0.0'),
        'health': f"{current_app.config['API_PREFIX']}/recommendations/health"
    })
