import io
import os

import httpx

from leafcare.models import Recommendation
from leafcare.services.classifier import ClassifierClient

from conftest import image_file, json_body

CLASSIFY_URL = '/api/v1/classify'


def temp_files(app):
    upload_dir = app.config['TEMP_UPLOAD_DIR']
    return os.listdir(upload_dir) if os.path.isdir(upload_dir) else []


def test_classify_image(app, client, farmer_headers, fake_classifier):
    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={'image': image_file(), 'metadata': 'plot-1'},
                           content_type='multipart/form-data')

    assert response.status_code == 200
    data = json_body(response)['data']
    assert data['predicted_class'] == 'healthy'
    assert data['model_version'] == 'test-1'
    assert len(fake_classifier.predict_calls) == 1
    assert temp_files(app) == []


def test_missing_image_never_reaches_classifier(client, farmer_headers, fake_classifier):
    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={}, content_type='multipart/form-data')

    assert response.status_code == 400
    assert json_body(response)['message'] == 'No image file provided'
    assert fake_classifier.calls == []


def test_wrong_type_never_reaches_classifier(app, client, farmer_headers, fake_classifier):
    pdf = (io.BytesIO(b'%PDF-1.4'), 'leaf.pdf', 'application/pdf')

    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={'image': pdf}, content_type='multipart/form-data')

    assert response.status_code == 400
    assert fake_classifier.calls == []
    assert temp_files(app) == []


def test_oversized_image_is_413(app, client, farmer_headers, fake_classifier):
    app.config['MAX_FILE_SIZE'] = 64

    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={'image': image_file(size=1024)}, content_type='multipart/form-data')

    assert response.status_code == 413
    assert fake_classifier.calls == []


def test_classifier_outage_is_502_and_cleans_up(app, client, farmer_headers, fake_classifier):
    fake_classifier.always_fail = True

    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={'image': image_file()}, content_type='multipart/form-data')

    assert response.status_code == 502
    assert json_body(response)['message'] == 'Failed to classify image'
    assert len(fake_classifier.predict_calls) == 3
    assert temp_files(app) == []


def test_malformed_classifier_reply_is_502(app, client, farmer_headers, fake_classifier):
    fake_classifier.prediction = {'status': 'healthy', 'confidence': 'high'}

    response = client.post(f'{CLASSIFY_URL}/image', headers=farmer_headers,
                           data={'image': image_file()}, content_type='multipart/form-data')

    assert response.status_code == 502
    assert json_body(response)['message'] == 'Failed to classify image'
    assert len(fake_classifier.predict_calls) == 3
    assert temp_files(app) == []


def test_classification_requires_authentication(client, fake_classifier):
    response = client.post(f'{CLASSIFY_URL}/image', data={'image': image_file()},
                           content_type='multipart/form-data')

    assert response.status_code == 401
    assert fake_classifier.calls == []


def test_classify_with_recommendations(client, farmer_headers, fake_classifier):
    fake_classifier.status = 'unhealthy'
    fake_classifier.confidence = 0.65

    response = client.post(f'{CLASSIFY_URL}/image/with-recommendations', headers=farmer_headers,
                           data={'image': image_file(), 'sessionId': 'sess-9',
                                 'additionalContext': 'field 3'},
                           content_type='multipart/form-data')

    assert response.status_code == 200
    data = json_body(response)['data']
    assert data['sessionId'] == 'sess-9'
    assert data['classification']['predicted_class'] == 'angular_leaf_spot'
    assert data['recommendation']['success'] is True
    assert data['recommendation']['data']['content']['severity'] == 'mild'

    stored = Recommendation.query.one()
    assert stored.session_id == 'sess-9'
    assert 'field 3' in stored.content['additionalNotes']


def test_classify_with_recommendations_generates_session_id(client, farmer_headers, fake_classifier):
    response = client.post(f'{CLASSIFY_URL}/image/with-recommendations', headers=farmer_headers,
                           data={'image': image_file()}, content_type='multipart/form-data')

    session_id = json_body(response)['data']['sessionId']
    assert session_id
    assert Recommendation.query.one().session_id == session_id


def test_batch_isolates_failures(app, client, farmer_headers, fake_classifier):
    fake_classifier.fail_for = {'bad.jpg'}

    response = client.post(f'{CLASSIFY_URL}/batch', headers=farmer_headers,
                           data={'images': [image_file('one.jpg'), image_file('bad.jpg'),
                                            image_file('two.jpg')]},
                           content_type='multipart/form-data')

    assert response.status_code == 200
    data = json_body(response)['data']
    assert data['summary'] == {'total': 3, 'successful': 2, 'failed': 1}
    assert [item['filename'] for item in data['results']] == ['one.jpg', 'bad.jpg', 'two.jpg']
    assert 'error' in data['results'][1]
    assert temp_files(app) == []


def test_batch_rejects_more_than_ten_files(client, farmer_headers, fake_classifier):
    files = [image_file(f'leaf{i}.jpg') for i in range(11)]

    response = client.post(f'{CLASSIFY_URL}/batch', headers=farmer_headers,
                           data={'images': files}, content_type='multipart/form-data')

    assert response.status_code == 400
    assert fake_classifier.calls == []


def test_batch_validates_every_file_before_forwarding(app, client, farmer_headers, fake_classifier):
    pdf = (io.BytesIO(b'%PDF-1.4'), 'notes.pdf', 'application/pdf')

    response = client.post(f'{CLASSIFY_URL}/batch', headers=farmer_headers,
                           data={'images': [image_file('one.jpg'), pdf]},
                           content_type='multipart/form-data')

    assert response.status_code == 400
    assert fake_classifier.calls == []
    assert temp_files(app) == []


def test_public_service_endpoints(client, fake_classifier):
    health = json_body(client.get(f'{CLASSIFY_URL}/health'))
    assert health['status'] == 'healthy'
    assert health['mlApi'] is True

    stats = client.get(f'{CLASSIFY_URL}/stats')
    assert stats.status_code == 200
    assert json_body(stats)['model'] == 'leaf-spot'

    formats = json_body(client.get(f'{CLASSIFY_URL}/supported-formats'))
    assert 'image/webp' in formats['supportedFormats']
    assert formats['maxFileSize'] == '16MB'
    assert formats['maxBatchSize'] == 10


def test_stats_unavailable_is_503(app, client):
    app.config['CLASSIFIER_SERVICE'] = ClassifierClient(
        'http://classifier.test',
        transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )

    response = client.get(f'{CLASSIFY_URL}/stats')

    assert response.status_code == 503
    assert json_body(response)['message'] == 'Unable to retrieve classification statistics'


def test_admin_system_health(client, admin_headers, farmer_headers, fake_classifier):
    assert client.get('/api/v1/health', headers=farmer_headers).status_code == 403

    response = client.get('/api/v1/health', headers=admin_headers)

    assert response.status_code == 200
    body = json_body(response)
    assert body['status'] == 'healthy'
    assert body['services']['mlApi']['available'] is True
    assert body['services']['recommendations']['status'] == 'healthy'
