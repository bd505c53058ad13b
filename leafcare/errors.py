# =============================================================================
# LeafCare API
# errors.py - Error Taxonomy
#
# Typed exceptions raised by services and routes. A single error handler in
# app.py translates them into JSON responses with a stable status code.
# =============================================================================


class APIError(Exception):
    """
    Base class for errors that map onto an HTTP response.

    Attributes:
        status_code: HTTP status returned to the client
        error: Short, stable error label
        message: Human-readable message
        details: Optional extra payload (field names, allowed values)
    """
    status_code = 500
    error = 'Internal Server Error'
    default_message = 'An unexpected error occurred. Please try again later.'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {
            'success': False,
            'statusCode': self.status_code,
            'error': self.error,
            'message': self.message
        }
        if self.details is not None:
            data['details'] = self.details
        return data


class ValidationError(APIError):
    status_code = 400
    error = 'Bad Request'
    default_message = 'Invalid request'


class UnauthorizedError(APIError):
    status_code = 401
    error = 'Unauthorized'
    default_message = 'Authentication required'


class ForbiddenError(APIError):
    status_code = 403
    error = 'Forbidden'
    default_message = 'You do not have permission to access this resource'


class NotFoundError(APIError):
    status_code = 404
    error = 'Not Found'
    default_message = 'The requested resource was not found'


class ConflictError(APIError):
    status_code = 409
    error = 'Conflict'
    default_message = 'A record with this value already exists'


class PayloadTooLargeError(APIError):
    status_code = 413
    error = 'File Too Large'
    default_message = 'The uploaded file exceeds the maximum allowed size'


class RateLimitedError(APIError):
    status_code = 429
    error = 'Rate Limit Exceeded'
    default_message = 'Too many requests. Please try again later.'


class UpstreamUnavailableError(APIError):
    status_code = 503
    error = 'Service Unavailable'
    default_message = 'An upstream service is not accessible'


class ClassifierUnavailableError(UpstreamUnavailableError):
    """Classifier could not produce a prediction after all retries."""
    status_code = 502
    error = 'Bad Gateway'
    default_message = 'Failed to classify image'


# =============================================================================
# Recommendation generator failures
# Caught by the recommendation service and reported as success=False
# =============================================================================

class GenerationError(APIError):
    status_code = 502
    error = 'Generation Failed'
    default_message = 'Failed to generate recommendation. Please try again.'


class GenerationRateLimitedError(GenerationError):
    status_code = 429
    default_message = ('AI service temporarily unavailable due to rate limits. '
                       'Please try again later.')


class GenerationAuthError(GenerationError):
    status_code = 401
    default_message = 'AI service authentication failed. Please check configuration.'


class GenerationUnavailableError(GenerationError):
    status_code = 503
    default_message = 'Failed to generate recommendation. Please try again.'
