import pytest

from leafcare.decorators import check_roles
from leafcare.errors import ForbiddenError
from leafcare.extensions import db
from leafcare.models import User

from conftest import PASSWORD, json_body

USERS_URL = '/api/v1/users'


# =============================================================================
# Role gate
# =============================================================================

def test_check_roles_passes_with_no_required_roles():
    assert check_roles((), [])
    assert check_roles([], ['farmer'])


def test_check_roles_passes_on_intersection():
    assert check_roles(('manager', 'admin'), ['farmer', 'manager'])


def test_check_roles_rejects_disjoint_roles():
    with pytest.raises(ForbiddenError):
        check_roles(('admin',), ['farmer', 'manager'])


def test_farmer_cannot_list_users(client, farmer_headers):
    response = client.get(USERS_URL, headers=farmer_headers)

    assert response.status_code == 403
    assert json_body(response)['error'] == 'Forbidden'


def test_user_routes_require_a_token(client):
    assert client.get(USERS_URL).status_code == 401


# =============================================================================
# Admin management
# =============================================================================

def test_admin_creates_user_with_roles(client, admin_headers):
    response = client.post(USERS_URL, headers=admin_headers, json={
        'name': 'Field Manager',
        'email': 'manager@example.com',
        'password': PASSWORD,
        'roles': ['manager', 'farmer'],
        'tenantId': 'coop-1'
    })

    assert response.status_code == 201
    data = json_body(response)['data']
    assert data['roles'] == ['manager', 'farmer']
    assert data['tenantId'] == 'coop-1'
    assert 'passwordHash' not in data


def test_admin_create_rejects_unknown_role(client, admin_headers):
    response = client.post(USERS_URL, headers=admin_headers, json={
        'name': 'Someone', 'email': 'someone@example.com', 'password': PASSWORD,
        'roles': ['superuser']
    })

    assert response.status_code == 400


def test_list_users_filters_by_role_and_status(client, admin_headers, make_user):
    make_user(roles=('manager',), email='m1@example.com')
    make_user(roles=('manager',), email='m2@example.com', is_active=False)
    make_user(roles=('farmer',), email='f1@example.com')

    response = client.get(f'{USERS_URL}?role=manager&isActive=true', headers=admin_headers)

    assert response.status_code == 200
    emails = [user['email'] for user in json_body(response)['data']]
    assert emails == ['m1@example.com']


def test_user_statistics(client, admin_headers, make_user):
    make_user(roles=('farmer',))
    make_user(roles=('farmer', 'manager'), is_active=False)

    response = client.get(f'{USERS_URL}/statistics', headers=admin_headers)

    stats = json_body(response)['data']
    # The admin behind admin_headers is counted too
    assert stats['total'] == 3
    assert stats['active'] == 2
    assert stats['inactive'] == 1
    assert stats['byRole'] == {'admin': 1, 'farmer': 2, 'manager': 1}


def test_update_user_changes_roles_but_not_password(client, admin_headers, make_user):
    user = make_user()

    response = client.patch(f'{USERS_URL}/{user.id}', headers=admin_headers,
                            json={'roles': ['manager'], 'name': 'Renamed'})
    assert response.status_code == 200
    assert json_body(response)['data']['roles'] == ['manager']
    assert json_body(response)['data']['name'] == 'Renamed'

    response = client.patch(f'{USERS_URL}/{user.id}', headers=admin_headers,
                            json={'password': 'N3w!Password'})
    assert response.status_code == 400


def test_soft_delete_deactivates(client, admin_headers, make_user):
    user = make_user()

    response = client.delete(f'{USERS_URL}/{user.id}', headers=admin_headers)

    assert response.status_code == 200
    assert json_body(response)['data']['isActive'] is False
    assert db.session.get(User, user.id) is not None


def test_activate_and_deactivate(client, admin_headers, make_user):
    user = make_user(is_active=False)

    response = client.patch(f'{USERS_URL}/{user.id}/activate', headers=admin_headers)
    assert json_body(response)['data']['isActive'] is True

    response = client.patch(f'{USERS_URL}/{user.id}/deactivate', headers=admin_headers)
    assert json_body(response)['data']['isActive'] is False


def test_permanent_delete_removes_user(client, admin_headers, make_user):
    user = make_user()

    response = client.delete(f'{USERS_URL}/{user.id}/permanent', headers=admin_headers)
    assert response.status_code == 200

    response = client.get(f'{USERS_URL}/{user.id}', headers=admin_headers)
    assert response.status_code == 404


def test_get_missing_user_is_404(client, admin_headers):
    assert client.get(f'{USERS_URL}/9999', headers=admin_headers).status_code == 404


# =============================================================================
# Self service
# =============================================================================

def test_change_password(client, make_user, auth_headers):
    user = make_user(email='self@example.com')
    headers = auth_headers(user)

    response = client.patch(f'{USERS_URL}/me/change-password', headers=headers, json={
        'currentPassword': PASSWORD, 'newPassword': 'N3w!Password'
    })
    assert response.status_code == 200

    login = client.post('/api/v1/auth/login', json={
        'email': 'self@example.com', 'password': 'N3w!Password'
    })
    assert login.status_code == 200


def test_change_password_requires_current_password(client, make_user, auth_headers):
    user = make_user()

    response = client.patch(f'{USERS_URL}/me/change-password', headers=auth_headers(user), json={
        'currentPassword': 'Wr0ng!Pass', 'newPassword': 'N3w!Password'
    })

    assert response.status_code == 400
