# =============================================================================
# LeafCare API
# routes/recommendations.py - Recommendation Routes
#
# Generate treatment recommendations from a classification result, browse
# stored recommendations, submit feedback, and read aggregate analytics.
# =============================================================================

from flask import Blueprint, request, jsonify, current_app

from ..constants import ANY_ROLE, STAFF_ROLES
from ..decorators import roles_required, validate_json, paginated_query, handle_db_errors
from ..utils import success_response

# Create blueprint
recommendations_bp = Blueprint('recommendations', __name__)


def _recommendation_service():
    return current_app.config['RECOMMENDATION_SERVICE']


# =============================================================================
# Generate
# =============================================================================

@recommendations_bp.route('/generate', methods=['POST'])
@roles_required(*ANY_ROLE)
@validate_json('classification', 'confidence', 'sessionId')
@handle_db_errors
def generate_recommendation(data):
    """
    Generate and store a recommendation.

    Request Body:
        classification (str): Classification label
        confidence (float): Classifier confidence in [0, 1]
        sessionId (str): Correlation id
        additionalContext (str): Optional context for the generator

    Returns:
        200: {success, message, data?, processingTimeMs}; success is false
             when the generator failed, and nothing is stored
        400: Validation error
    """
    result = _recommendation_service().generate(
        data['classification'],
        data['confidence'],
        data['sessionId'],
        additional_context=data.get('additionalContext')
    )
    return jsonify(result)


# =============================================================================
# Browse
# =============================================================================

@recommendations_bp.route('', methods=['GET'])
@roles_required(*ANY_ROLE)
@paginated_query()
def list_recommendations(limit, skip):
    """
    List recommendations, newest first.

    Query Parameters:
        sessionId (str): Filter by session
        classification (str): Filter by classification label
        limit (int): Page size, 1-100 (default 10)
        skip (int): Records to skip (default 0)
    """
    page = _recommendation_service().list(
        session_id=request.args.get('sessionId') or None,
        classification=request.args.get('classification') or None,
        limit=limit,
        skip=skip
    )
    return success_response(data=page)


@recommendations_bp.route('/analytics', methods=['GET'])
@roles_required(*STAFF_ROLES)
def recommendation_analytics():
    return success_response(data=_recommendation_service().analytics())


@recommendations_bp.route('/health', methods=['GET'])
def recommendation_health():
    return jsonify(_recommendation_service().health())


@recommendations_bp.route('/<int:recommendation_id>', methods=['GET'])
@roles_required(*ANY_ROLE)
def get_recommendation(recommendation_id):
    recommendation = _recommendation_service().get(recommendation_id)
    return success_response(data=recommendation.to_dict())


# =============================================================================
# Feedback
# =============================================================================

@recommendations_bp.route('/<int:recommendation_id>/feedback', methods=['PATCH'])
@roles_required(*ANY_ROLE)
@validate_json('rating')
@handle_db_errors
def submit_feedback(recommendation_id, data):
    """
    Rate a recommendation.

    Request Body:
        rating (int): 1-5
        feedback (str): Optional comment

    Returns:
        200: Updated recommendation
        400: Rating out of range
        404: Recommendation not found
    """
    recommendation = _recommendation_service().submit_feedback(
        recommendation_id,
        data['rating'],
        feedback=data.get('feedback')
    )
    return success_response(data=recommendation.to_dict(), message='Feedback submitted successfully')
