# =============================================================================
# LeafCare API
# routes/auth.py - Authentication Routes
#
# Handles registration, login, token refresh, logout, and the caller's
# token profile.
# =============================================================================

from flask import Blueprint, jsonify, current_app, g

from ..extensions import limiter
from ..constants import ANY_ROLE
from ..decorators import roles_required, validate_json, handle_db_errors

# Create blueprint
auth_bp = Blueprint('auth', __name__)


def _auth_service():
    return current_app.config['AUTH_SERVICE']


# =============================================================================
# User Registration
# =============================================================================

@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
@validate_json('name', 'email', 'password')
@handle_db_errors
def register(data):
    """
    Register a new farmer account.

    Request Body:
        name (str): Display name (2-100 chars)
        email (str): Email address
        password (str): Password meeting the complexity policy

    Returns:
        201: Token pair and user summary
        400: Validation error
        409: Email already registered
    """
    result = _auth_service().register(data['name'], data['email'], data['password'])
    return jsonify(result), 201


# =============================================================================
# User Login
# =============================================================================

@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
@validate_json('email', 'password')
@handle_db_errors
def login(data):
    """
    Authenticate with email and password.

    Returns:
        200: Token pair and user summary
        401: Invalid credentials (unknown email, wrong password or inactive)
    """
    return jsonify(_auth_service().login(data['email'], data['password']))


# =============================================================================
# Token Refresh
# =============================================================================

@auth_bp.route('/refresh', methods=['POST'])
@validate_json('refreshToken')
@handle_db_errors
def refresh(data):
    """Exchange a refresh token for a new token pair."""
    return jsonify(_auth_service().refresh(data['refreshToken']))


# =============================================================================
# Logout
# =============================================================================

@auth_bp.route('/logout', methods=['POST'])
@roles_required()
def logout():
    """
    Invalidate the caller's refresh token.

    Already issued access tokens remain valid until they expire.
    """
    _auth_service().logout(g.jwt_claims['sub'])
    return jsonify({'success': True, 'message': 'Logged out successfully'})


# =============================================================================
# Profile
# =============================================================================

@auth_bp.route('/profile', methods=['GET'])
@roles_required(*ANY_ROLE)
def profile():
    """Return the verified claims of the caller's access token."""
    claims = g.jwt_claims
    return jsonify({
        'success': True,
        'data': {
            'id': claims['sub'],
            'email': claims.get('email'),
            'roles': claims.get('roles', []),
            'tenantId': claims.get('tenant_id')
        }
    })
