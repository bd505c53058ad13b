import json
import logging
from datetime import timedelta

import pytest

from leafcare import create_app
from leafcare.config import parse_duration
from leafcare.init_db import seed_admin
from leafcare.models import User

from conftest import json_body


# =============================================================================
# Audit middleware
# =============================================================================

def audit_entries(caplog):
    return [
        (record.levelno, json.loads(record.getMessage()))
        for record in caplog.records
        if record.name == 'leafcare.audit'
    ]


def test_audit_log_records_authenticated_request(client, make_user, auth_headers, caplog):
    user = make_user(roles=('manager',), tenant_id='coop-2')
    caplog.set_level(logging.INFO, logger='leafcare.audit')

    client.get('/api/v1/auth/profile', headers=auth_headers(user))

    level, entry = audit_entries(caplog)[-1]
    assert level == logging.INFO
    assert entry['userId'] == str(user.id)
    assert entry['email'] == user.email
    assert entry['roles'] == ['manager']
    assert entry['tenantId'] == 'coop-2'
    assert entry['method'] == 'GET'
    assert entry['path'] == '/api/v1/auth/profile'
    assert entry['statusCode'] == 200
    assert entry['duration'] >= 0


def test_audit_log_levels_follow_status(client, farmer_headers, caplog):
    caplog.set_level(logging.INFO, logger='leafcare.audit')

    client.get('/api/v1/users', headers=farmer_headers)

    level, entry = audit_entries(caplog)[-1]
    assert level == logging.WARNING
    assert entry['statusCode'] == 403


def test_anonymous_requests_are_audited_without_identity(client, caplog):
    caplog.set_level(logging.INFO, logger='leafcare.audit')

    client.get('/api/v1/classify/supported-formats')

    _, entry = audit_entries(caplog)[-1]
    assert entry['userId'] is None
    assert entry['roles'] is None


def test_request_id_is_echoed(client):
    response = client.get('/api/v1/', headers={'X-Request-ID': 'req-123'})

    assert response.headers['X-Request-ID'] == 'req-123'
    assert client.get('/api/v1/').headers['X-Request-ID']


# =============================================================================
# Error shape
# =============================================================================

def test_unknown_route_uses_error_shape(client):
    response = client.get('/api/v1/nothing-here')

    assert response.status_code == 404
    assert json_body(response) == {
        'success': False,
        'statusCode': 404,
        'error': 'Not Found',
        'message': 'The requested resource was not found'
    }


def test_wrong_method_is_405(client):
    response = client.delete('/api/v1/classify/supported-formats')

    assert response.status_code == 405
    assert json_body(response)['statusCode'] == 405


def test_non_json_body_is_rejected(client):
    response = client.post('/api/v1/auth/login', data='email=x', content_type='text/plain')

    assert response.status_code == 400
    assert json_body(response)['message'] == 'Content-Type must be application/json'


def test_banner(client):
    body = json_body(client.get('/api/v1/'))

    assert body['name'] == 'LeafCare API'


# =============================================================================
# Configuration
# =============================================================================

@pytest.mark.parametrize('value, expected', [
    ('1h', timedelta(hours=1)),
    ('7d', timedelta(days=7)),
    ('15m', timedelta(minutes=15)),
    ('90', timedelta(seconds=90)),
    ('soon', timedelta(minutes=5)),
    (None, timedelta(minutes=5)),
])
def test_parse_duration(value, expected):
    assert parse_duration(value, timedelta(minutes=5)) == expected


def test_rate_limiter_follows_config(monkeypatch):
    from leafcare.config import TestingConfig
    from leafcare.extensions import db

    monkeypatch.setattr(TestingConfig, 'RATELIMIT_ENABLED', True)
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        client = app.test_client()
        credentials = {'email': 'nobody@example.com', 'password': 'Wr0ng!Pass'}
        statuses = [client.post('/api/v1/auth/login', json=credentials).status_code for _ in range(11)]
        limited = client.post('/api/v1/auth/login', json=credentials)
        db.session.remove()
        db.drop_all()

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    assert json_body(limited) == {
        'success': False,
        'statusCode': 429,
        'error': 'Rate Limit Exceeded',
        'message': 'Too many requests. Please try again later.'
    }


def test_production_requires_secrets(monkeypatch):
    from leafcare.config import ProductionConfig

    monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', None)

    with pytest.raises(RuntimeError) as exc:
        create_app('production')
    assert 'SQLALCHEMY_DATABASE_URI' in str(exc.value)


# =============================================================================
# CLI
# =============================================================================

def test_seed_admin_is_idempotent(app):
    admin, created = seed_admin('root@example.com', 'Adm1n!Password')
    assert created
    assert admin.role_list == ['farmer', 'manager', 'admin']

    again, created = seed_admin('root@example.com', 'Adm1n!Password')
    assert not created
    assert again.id == admin.id
    assert User.query.count() == 1


def test_init_db_command(app):
    app.config['DEFAULT_ADMIN_EMAIL'] = 'seed@example.com'
    app.config['DEFAULT_ADMIN_PASSWORD'] = 'Adm1n!Password'

    result = app.test_cli_runner().invoke(args=['init-db'])

    assert result.exit_code == 0
    assert 'Admin user created' in result.output
    assert User.query.filter_by(email='seed@example.com').one().has_role('admin')


def test_cleanup_uploads_command(app, tmp_path):
    upload_dir = tmp_path / 'uploads'
    upload_dir.mkdir()
    (upload_dir / 'old.jpg').write_bytes(b'x')
    app.config['TEMP_UPLOAD_DIR'] = str(upload_dir)

    result = app.test_cli_runner().invoke(args=['cleanup-uploads', '--max-age=-1'])

    assert result.exit_code == 0
    assert 'Removed 1 stale upload(s)' in result.output
