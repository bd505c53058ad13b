"""
Shared pytest fixtures.

Every test gets a fresh app on the testing config (in-memory SQLite,
fast bcrypt, no generator latency, no retry backoff).
"""

import io
import json

import httpx
import pytest

from leafcare import create_app
from leafcare.extensions import db
from leafcare.models import Recommendation
from leafcare.services.classifier import ClassifierClient

PASSWORD = 'Str0ng!Pass'


@pytest.fixture
def app(tmp_path):
    app = create_app('testing')
    app.config['TEMP_UPLOAD_DIR'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user directly through the credential store."""
    counter = {'n': 0}

    def _make_user(roles=('farmer',), email=None, password=PASSWORD, is_active=True, tenant_id=None):
        counter['n'] += 1
        return app.config['USER_SERVICE'].create_user(
            f"Test User {counter['n']}",
            email or f"user{counter['n']}@example.com",
            password,
            roles=list(roles),
            tenant_id=tenant_id,
            is_active=is_active
        )

    return _make_user


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = app.config['TOKEN_SERVICE'].issue_access_token(user)
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers


@pytest.fixture
def farmer_headers(make_user, auth_headers):
    return auth_headers(make_user(roles=('farmer',)))


@pytest.fixture
def manager_headers(make_user, auth_headers):
    return auth_headers(make_user(roles=('manager',)))


@pytest.fixture
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user(roles=('admin',)))


class FakeClassifier:
    """
    Handler for httpx.MockTransport imitating the classifier service.

    Images whose filename appears in fail_for get a 500; everything else
    is answered with the configured status and confidence, or with the
    raw prediction value when one is set.
    """

    def __init__(self, status='healthy', confidence=0.9, fail_for=(), always_fail=False, prediction=None):
        self.status = status
        self.confidence = confidence
        self.fail_for = set(fail_for)
        self.always_fail = always_fail
        self.prediction = prediction
        self.calls = []

    def __call__(self, request):
        request.read()
        self.calls.append(request)

        if request.url.path == '/':
            return httpx.Response(200, json={'status': 'ok'})
        if request.url.path == '/model/info':
            return httpx.Response(200, json={'model': 'leaf-spot', 'version': '1.0.0'})

        if self.always_fail:
            return httpx.Response(500, json={'error': 'boom'})
        for name in self.fail_for:
            if f'filename="{name}"'.encode() in request.content:
                return httpx.Response(500, json={'error': 'boom'})

        prediction = self.prediction
        if prediction is None:
            prediction = {'status': self.status, 'confidence': self.confidence}
        return httpx.Response(200, json={
            'success': True,
            'prediction': prediction
        })

    @property
    def predict_calls(self):
        return [call for call in self.calls if call.url.path == '/predict']


@pytest.fixture
def fake_classifier(app):
    """Swap the app's classifier client for one backed by a MockTransport."""
    handler = FakeClassifier()
    app.config['CLASSIFIER_SERVICE'] = ClassifierClient(
        'http://classifier.test',
        max_retries=3,
        backoff_base=0,
        model_version='test-1',
        transport=httpx.MockTransport(handler)
    )
    return handler


def image_file(name='leaf.jpg', size=128):
    return (io.BytesIO(b'\xff\xd8\xff' + b'\x00' * size), name, 'image/jpeg')


def add_recommendation(classification='angular_leaf_spot', severity='moderate',
                       rating=None, session_id='session-1', confidence=0.85, created_at=None):
    recommendation = Recommendation(
        session_id=session_id,
        classification=classification,
        confidence=confidence,
        content={'disease': classification, 'severity': severity},
        severity=severity,
        generated_by='TemplateRecommendationGenerator',
        prompt_version='1.0.0',
        user_rating=rating
    )
    if created_at is not None:
        recommendation.created_at = created_at
    db.session.add(recommendation)
    db.session.commit()
    return recommendation


def json_body(response):
    return json.loads(response.data)
