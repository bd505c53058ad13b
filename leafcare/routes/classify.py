# =============================================================================
# LeafCare API
# routes/classify.py - Image Classification Routes
#
# Upload endpoints that validate leaf images and forward them to the
# classifier service, optionally generating a recommendation.
# Classification views are async so outbound calls run on httpx.AsyncClient.
# =============================================================================

import os
import uuid
from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, current_app

from ..constants import ANY_ROLE
from ..errors import ValidationError
from ..decorators import roles_required
from ..services.uploads import validate_upload, save_temp_upload
from ..utils import success_response, format_megabytes

# Create blueprint
classify_bp = Blueprint('classify', __name__)


def _classifier():
    return current_app.config['CLASSIFIER_SERVICE']


def _validated_upload(field='image'):
    """Validate the uploaded image and write it to the temp directory."""
    file = request.files.get(field)
    validate_upload(
        file,
        current_app.config['ALLOWED_MIME_TYPES'],
        current_app.config['MAX_FILE_SIZE']
    )
    return file, save_temp_upload(file, current_app.config['TEMP_UPLOAD_DIR'])


# =============================================================================
# Single Image
# =============================================================================

@classify_bp.route('/image', methods=['POST'])
@roles_required(*ANY_ROLE)
async def classify_image():
    """
    Classify a single leaf image.

    Form Data:
        image (file): Leaf image (required)
        metadata (str): Optional metadata forwarded to the classifier

    Returns:
        200: Prediction result
        400: Missing file or unsupported type
        413: File too large
        502: Classifier unavailable after retries
    """
    file, path = _validated_upload()

    result = await _classifier().classify(
        path,
        filename=file.filename,
        content_type=file.mimetype,
        metadata=request.form.get('metadata')
    )
    return success_response(data=result, message='Image classified successfully')


@classify_bp.route('/image/with-recommendations', methods=['POST'])
@roles_required(*ANY_ROLE)
async def classify_image_with_recommendations():
    """
    Classify a leaf image and generate a treatment recommendation.

    Form Data:
        image (file): Leaf image (required)
        sessionId (str): Correlation id; generated when absent
        additionalContext (str): Extra context passed to the generator
        metadata (str): Optional metadata forwarded to the classifier
    """
    file, path = _validated_upload()
    session_id = request.form.get('sessionId') or str(uuid.uuid4())

    prediction = await _classifier().classify(
        path,
        filename=file.filename,
        content_type=file.mimetype,
        metadata=request.form.get('metadata')
    )

    recommendation = current_app.config['RECOMMENDATION_SERVICE'].generate(
        prediction['predicted_class'],
        prediction['confidence'],
        session_id,
        additional_context=request.form.get('additionalContext')
    )

    return success_response(data={
        'sessionId': session_id,
        'classification': prediction,
        'recommendation': recommendation
    })


# =============================================================================
# Batch
# =============================================================================

@classify_bp.route('/batch', methods=['POST'])
@roles_required(*ANY_ROLE)
async def classify_batch():
    """
    Classify up to MAX_BATCH_SIZE images concurrently.

    Every file is validated before any is forwarded. A failing image is
    reported in its own result entry and does not affect the others.

    Returns:
        200: results (in upload order) and a summary
    """
    files = [file for file in request.files.getlist('images') if file and file.filename]
    max_batch = current_app.config['MAX_BATCH_SIZE']

    if not files:
        raise ValidationError('No image files provided', details={'field': 'images'})
    if len(files) > max_batch:
        raise ValidationError(f'Maximum {max_batch} files allowed per batch')

    for file in files:
        validate_upload(
            file,
            current_app.config['ALLOWED_MIME_TYPES'],
            current_app.config['MAX_FILE_SIZE']
        )

    uploads = []
    try:
        for file in files:
            uploads.append({
                'path': save_temp_upload(file, current_app.config['TEMP_UPLOAD_DIR']),
                'filename': file.filename,
                'content_type': file.mimetype
            })
    except OSError:
        for upload in uploads:
            if os.path.exists(upload['path']):
                os.remove(upload['path'])
        raise

    results = await _classifier().classify_batch(uploads, metadata=request.form.get('metadata'))
    successful = sum(1 for item in results if 'result' in item)

    return success_response(data={
        'results': results,
        'summary': {
            'total': len(results),
            'successful': successful,
            'failed': len(results) - successful
        }
    })


# =============================================================================
# Service Information (public)
# =============================================================================

@classify_bp.route('/health', methods=['GET'])
async def classifier_health():
    healthy = await _classifier().health_check()
    return jsonify({
        'status': 'healthy' if healthy else 'degraded',
        'mlApi': healthy,
        'timestamp': datetime.now(timezone.utc).isoformat()
    })


@classify_bp.route('/stats', methods=['GET'])
async def classifier_stats():
    """Model information reported by the classifier (503 when unreachable)."""
    return jsonify(await _classifier().model_info())


@classify_bp.route('/supported-formats', methods=['GET'])
def supported_formats():
    max_size = current_app.config['MAX_FILE_SIZE']
    return jsonify({
        'supportedFormats': list(current_app.config['ALLOWED_MIME_TYPES']),
        'maxFileSize': format_megabytes(max_size),
        'maxBatchSize': current_app.config['MAX_BATCH_SIZE'],
        'description': (
            'Angular leaf spot detection supports common image formats up to '
            f'{format_megabytes(max_size)} per file'
        )
    })
