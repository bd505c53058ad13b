# =============================================================================
# LeafCare API
# services/classifier.py - Classifier Proxy
#
# Forwards uploaded leaf images to the external ML classification service,
# retries transient failures with exponential backoff, and normalizes the
# service's binary healthy/unhealthy answer into a prediction record.
# =============================================================================

import os
import math
import time
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import httpx

from ..constants import CLASS_HEALTHY, CLASS_DISEASED, MESSAGES
from ..errors import APIError, ClassifierUnavailableError, UpstreamUnavailableError
from ..utils import clamp

# Configure logging
logger = logging.getLogger(__name__)


class ClassifierResponseError(Exception):
    """The classifier answered, but not with a usable prediction."""


class ClassifierClient:
    """
    HTTP client for the external classification service.

    Endpoints used:
    - POST {base_url}/predict     multipart 'image' part + optional 'metadata'
    - GET  {base_url}/            liveness
    - GET  {base_url}/model/info  model metadata

    A fresh httpx.AsyncClient is opened per call, since each async Flask
    view runs on its own event loop.
    """

    HEALTH_TIMEOUT = 5.0

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        model_version: str = '1.0.0',
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            base_url: Classifier root URL
            timeout: Per-attempt request timeout in seconds
            max_retries: Total number of attempts for /predict
            backoff_base: Delay before retry n is backoff_base * 2**n seconds
            model_version: Version string stamped on predictions
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_base = backoff_base
        self.model_version = model_version
        self.transport = transport

    @classmethod
    def from_config(cls, config, transport=None):
        return cls(
            base_url=config['ML_API_URL'],
            timeout=config['ML_API_TIMEOUT'],
            max_retries=config['ML_API_MAX_RETRIES'],
            backoff_base=config['ML_API_BACKOFF_BASE'],
            model_version=config['ML_MODEL_VERSION'],
            transport=transport
        )

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport,
            follow_redirects=False
        )

    # =========================================================================
    # Classification
    # =========================================================================

    async def classify(
        self,
        image_path: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        metadata: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Classify one image stored at image_path.

        The file at image_path is deleted before this returns or raises.

        Returns:
            dict: predicted_class, confidence, probabilities,
                  processing_time_ms, model_version, timestamp

        Raises:
            ClassifierUnavailableError: All attempts failed
        """
        start_time = time.perf_counter()
        filename = filename or os.path.basename(image_path)
        logger.info(f"Starting image classification for: {filename}")

        try:
            result = await self._predict_with_retry(image_path, filename, content_type, metadata)
            result['processing_time_ms'] = int((time.perf_counter() - start_time) * 1000)

            logger.info(
                f"Image classification completed in {result['processing_time_ms']}ms "
                f"for {filename}: {result['predicted_class']} ({result['confidence']:.3f})"
            )
            return result
        finally:
            self._cleanup_file(image_path)

    async def classify_batch(
        self,
        uploads: List[Dict[str, Any]],
        metadata: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Classify several images concurrently.

        Each upload dict has 'path', 'filename' and optionally
        'content_type'. One failure never aborts the others; the returned
        list keeps input order with either a 'result' or an 'error' entry.
        """
        logger.info(f"Starting batch classification for {len(uploads)} images")

        outcomes = await asyncio.gather(
            *(
                self.classify(
                    upload['path'],
                    filename=upload.get('filename'),
                    content_type=upload.get('content_type'),
                    metadata=metadata
                )
                for upload in uploads
            ),
            return_exceptions=True
        )

        results = []
        for upload, outcome in zip(uploads, outcomes):
            filename = upload.get('filename') or os.path.basename(upload['path'])
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                message = outcome.message if isinstance(outcome, APIError) else str(outcome)
                results.append({'filename': filename, 'error': message})
            else:
                results.append({'filename': filename, 'result': outcome})

        successful = sum(1 for item in results if 'result' in item)
        logger.info(f"Batch processing completed: {successful}/{len(results)} successful")
        return results

    async def _predict_with_retry(self, image_path, filename, content_type, metadata):
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._post_predict(image_path, filename, content_type, metadata)
            except (httpx.HTTPError, ClassifierResponseError, ValueError) as e:
                last_error = e
                logger.warning(
                    f"ML API request attempt {attempt}/{self.max_retries} failed: {e}"
                )

                if attempt < self.max_retries:
                    # Exponential backoff: base*2, base*4, base*8, ...
                    await asyncio.sleep(self.backoff_base * (2 ** attempt))

        logger.error(f"Classifier unavailable after {self.max_retries} attempts: {last_error}")
        raise ClassifierUnavailableError(MESSAGES['CLASSIFIER_UNAVAILABLE'])

    async def _post_predict(self, image_path, filename, content_type, metadata):
        data = {'metadata': metadata} if metadata else None

        with open(image_path, 'rb') as image_file:
            files = {'image': (filename, image_file, content_type or 'application/octet-stream')}
            async with self._client() as client:
                response = await client.post('/predict', files=files, data=data)

        response.raise_for_status()
        payload = response.json()

        if not isinstance(payload, dict) or not payload.get('success'):
            reason = payload.get('error') if isinstance(payload, dict) else None
            raise ClassifierResponseError(reason or 'Invalid response from ML API')

        prediction = payload.get('prediction')
        if not isinstance(prediction, dict):
            raise ClassifierResponseError('Missing prediction in ML API response')

        return self.normalize_prediction(prediction)

    def normalize_prediction(self, prediction: Dict[str, Any]) -> Dict[str, Any]:
        """
        Map the service's binary status into a two-class distribution.

        The reported confidence goes to the predicted class and the
        remainder to the other class.

        Raises:
            ClassifierResponseError: confidence is missing or not a finite number
        """
        confidence = prediction.get('confidence', 0.0)
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) \
                or not math.isfinite(confidence):
            raise ClassifierResponseError('Invalid confidence in ML API response')
        confidence = clamp(float(confidence))

        is_healthy = str(prediction.get('status', '')).lower() == CLASS_HEALTHY
        predicted_class = CLASS_HEALTHY if is_healthy else CLASS_DISEASED
        other_class = CLASS_DISEASED if is_healthy else CLASS_HEALTHY

        return {
            'predicted_class': predicted_class,
            'confidence': confidence,
            'probabilities': {
                predicted_class: confidence,
                other_class: round(1.0 - confidence, 10)
            },
            'processing_time_ms': 0,
            'model_version': self.model_version,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    def _cleanup_file(self, path):
        try:
            os.remove(path)
            logger.debug(f"Cleaned up temporary file: {path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup file {path}: {e}")

    # =========================================================================
    # Service Status
    # =========================================================================

    async def health_check(self) -> bool:
        try:
            async with self._client(self.HEALTH_TIMEOUT) as client:
                response = await client.get('/')
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"ML API health check failed: {e}")
            return False

    async def model_info(self) -> Dict[str, Any]:
        try:
            async with self._client(self.HEALTH_TIMEOUT) as client:
                response = await client.get('/model/info')
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to get ML API info: {e}")
            raise UpstreamUnavailableError('Unable to retrieve classification statistics')
