# =============================================================================
# LeafCare API
# routes/users.py - User Management Routes
#
# Administrative endpoints for account management, plus self-service
# password change. Everything except change-password requires the admin role.
# =============================================================================

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import ROLE_ADMIN, ANY_ROLE
from ..decorators import roles_required, validate_json, handle_db_errors
from ..utils import success_response, parse_bool

# Create blueprint
users_bp = Blueprint('users', __name__)


def _user_service():
    return current_app.config['USER_SERVICE']


# =============================================================================
# Create / List
# =============================================================================

@users_bp.route('', methods=['POST'])
@roles_required(ROLE_ADMIN)
@validate_json('name', 'email', 'password')
@handle_db_errors
def create_user(data):
    """
    Create a user with explicit roles (admin only).

    Request Body:
        name, email, password (required)
        roles (list): Defaults to ['farmer']
        tenantId (str): Optional cooperative id
        isActive (bool): Defaults to true
    """
    user = _user_service().create_user(
        data['name'],
        data['email'],
        data['password'],
        roles=data.get('roles'),
        tenant_id=data.get('tenantId'),
        is_active=data.get('isActive', True)
    )
    current_app.logger.info(f"Admin {g.jwt_claims['sub']} created user {user.id}")
    return success_response(data=user.to_dict(), message='User created successfully', status_code=201)


@users_bp.route('', methods=['GET'])
@roles_required(ROLE_ADMIN)
def list_users():
    """
    List users (admin only).

    Query Parameters:
        role (str): Filter by role
        isActive (bool): Filter by account status
        tenantId (str): Filter by cooperative
    """
    users = _user_service().list_users(
        role=request.args.get('role', '').strip() or None,
        is_active=parse_bool(request.args.get('isActive')),
        tenant_id=request.args.get('tenantId', '').strip() or None
    )
    return success_response(data=[user.to_dict() for user in users])


@users_bp.route('/statistics', methods=['GET'])
@roles_required(ROLE_ADMIN)
def user_statistics():
    return success_response(data=_user_service().statistics())


# =============================================================================
# Single User
# =============================================================================

@users_bp.route('/<int:user_id>', methods=['GET'])
@roles_required(ROLE_ADMIN)
def get_user(user_id):
    return success_response(data=_user_service().get(user_id).to_dict())


@users_bp.route('/<int:user_id>', methods=['PATCH'])
@roles_required(ROLE_ADMIN)
@validate_json()
@handle_db_errors
def update_user(user_id, data):
    """
    Partially update a user (admin only).

    Accepts name, email, roles, tenantId and isActive. Passwords are
    changed through /users/me/change-password.
    """
    user = _user_service().update_user(user_id, data)
    return success_response(data=user.to_dict(), message='User updated successfully')


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@roles_required(ROLE_ADMIN)
@handle_db_errors
def delete_user(user_id):
    """Soft delete: the account is deactivated and kept."""
    user = _user_service().set_active(user_id, False)
    return success_response(data=user.to_dict(), message='User deactivated successfully')


@users_bp.route('/<int:user_id>/permanent', methods=['DELETE'])
@roles_required(ROLE_ADMIN)
@handle_db_errors
def delete_user_permanently(user_id):
    _user_service().hard_delete(user_id)
    return success_response(message='User permanently deleted')


@users_bp.route('/<int:user_id>/activate', methods=['PATCH'])
@roles_required(ROLE_ADMIN)
@handle_db_errors
def activate_user(user_id):
    user = _user_service().set_active(user_id, True)
    return success_response(data=user.to_dict(), message='User activated successfully')


@users_bp.route('/<int:user_id>/deactivate', methods=['PATCH'])
@roles_required(ROLE_ADMIN)
@handle_db_errors
def deactivate_user(user_id):
    user = _user_service().set_active(user_id, False)
    return success_response(data=user.to_dict(), message='User deactivated successfully')


# =============================================================================
# Self Service
# =============================================================================

@users_bp.route('/me/change-password', methods=['PATCH'])
@roles_required(*ANY_ROLE)
@validate_json('currentPassword', 'newPassword')
@handle_db_errors
def change_password(data):
    """
    Change the caller's own password.

    Request Body:
        currentPassword (str): Existing password
        newPassword (str): New password meeting the complexity policy
    """
    _user_service().change_password(
        g.jwt_claims['sub'],
        data['currentPassword'],
        data['newPassword']
    )
    return jsonify({'success': True, 'message': 'Password changed successfully'})
