# =============================================================================
# LeafCare API
# config.py - Configuration Management
#
# Environment-based configuration for development, testing, and production.
# Uses python-dotenv to load environment variables from .env file.
# =============================================================================

import os
import re
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


_DURATION_UNITS = {
    's': 'seconds',
    'm': 'minutes',
    'h': 'hours',
    'd': 'days'
}


def parse_duration(value, default):
    """
    Parse a duration string such as '15m', '1h' or '7d'.

    Plain integers are read as seconds. Anything unparsable falls back
    to the given default.

    Args:
        value: Duration string from the environment (may be None)
        default: timedelta used when value is missing or invalid

    Returns:
        timedelta: Parsed duration
    """
    if not value:
        return default

    value = value.strip()
    if value.isdigit():
        return timedelta(seconds=int(value))

    match = re.match(r'^(\d+)([smhd])$', value)
    if not match:
        return default

    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _env_bool(name, default='false'):
    return os.getenv(name, default).lower() == 'true'


class Config:
    """
    Base configuration class with default settings.
    All other configuration classes inherit from this.
    """

    # ==========================================================================
    # Flask Core Settings
    # ==========================================================================
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = False
    TESTING = False
    API_PREFIX = os.getenv('API_PREFIX', '/api/v1')
    PORT = int(os.getenv('PORT', 3000))
    API_VERSION = '1.0.0'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///leafcare.db'  # Fallback to SQLite for development
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Connection pooling for server databases (not applied to SQLite)
    SERVER_DB_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
        'max_overflow': 20,
        'pool_timeout': 30
    }

    # ==========================================================================
    # JWT Authentication Configuration
    # ==========================================================================
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_REFRESH_SECRET_KEY = os.getenv(
        'JWT_REFRESH_SECRET_KEY',
        'jwt-refresh-secret-key-change-in-production'
    )
    JWT_ACCESS_TOKEN_EXPIRES = parse_duration(os.getenv('JWT_EXPIRES_IN'), timedelta(hours=1))
    JWT_REFRESH_TOKEN_EXPIRES = parse_duration(
        os.getenv('JWT_REFRESH_EXPIRES_IN'),
        timedelta(days=7)
    )
    JWT_TOKEN_LOCATION = ['headers']
    JWT_HEADER_NAME = 'Authorization'
    JWT_HEADER_TYPE = 'Bearer'
    JWT_ALGORITHM = 'HS256'

    # Password hashing work factor
    BCRYPT_LOG_ROUNDS = int(os.getenv('BCRYPT_SALT_ROUNDS', 12))

    # ==========================================================================
    # Rate Limiting Configuration
    # ==========================================================================
    THROTTLE_TTL = int(os.getenv('THROTTLE_TTL', 60))
    THROTTLE_LIMIT = int(os.getenv('THROTTLE_LIMIT', 100))
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'True')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URL', 'memory://')
    RATELIMIT_STRATEGY = os.getenv('RATELIMIT_STRATEGY', 'fixed-window')
    RATELIMIT_DEFAULT = f'{THROTTLE_LIMIT} per {THROTTLE_TTL} second'
    RATELIMIT_HEADERS_ENABLED = True

    # ==========================================================================
    # CORS Configuration
    # ==========================================================================
    CORS_ORIGINS = os.getenv('CORS_ORIGIN', 'http://localhost:4200').split(',')
    CORS_SUPPORTS_CREDENTIALS = True

    # ==========================================================================
    # File Upload Configuration
    # ==========================================================================
    MAX_FILE_SIZE = int(os.getenv('MAX_FILE_SIZE', 16 * 1024 * 1024))  # 16MB per file
    MAX_BATCH_SIZE = 10
    # Whole request body may carry a full batch plus form fields
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE * MAX_BATCH_SIZE + 1024 * 1024
    ALLOWED_MIME_TYPES = (
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/bmp',
        'image/tiff',
        'image/webp',
    )
    TEMP_UPLOAD_DIR = os.getenv(
        'TEMP_UPLOAD_DIR',
        os.path.join(os.getcwd(), 'temp-uploads')
    )
    TEMP_UPLOAD_MAX_AGE = timedelta(hours=24)

    # ==========================================================================
    # Classifier Service Configuration
    # ==========================================================================
    ML_API_URL = os.getenv('ML_API_URL', 'http://localhost:5000')
    ML_API_TIMEOUT = float(os.getenv('ML_API_TIMEOUT', 30))
    ML_API_MAX_RETRIES = int(os.getenv('ML_API_MAX_RETRIES', 3))
    ML_API_BACKOFF_BASE = float(os.getenv('ML_API_BACKOFF_BASE', 1.0))
    ML_MODEL_VERSION = os.getenv('ML_MODEL_VERSION', '1.0.0')

    # ==========================================================================
    # Recommendation Generator Configuration
    # ==========================================================================
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-3.5-turbo')
    OPENAI_MAX_TOKENS = int(os.getenv('OPENAI_MAX_TOKENS', 1000))
    USE_MOCK_AI = _env_bool('USE_MOCK_AI') or not OPENAI_API_KEY
    # Simulated latency range (seconds) for the template generator
    MOCK_AI_LATENCY = (1.0, 3.0)

    # ==========================================================================
    # Seed Admin
    # ==========================================================================
    DEFAULT_ADMIN_EMAIL = os.getenv('DEFAULT_ADMIN_EMAIL', 'admin@example.com')
    DEFAULT_ADMIN_PASSWORD = os.getenv('DEFAULT_ADMIN_PASSWORD', '')


class DevelopmentConfig(Config):
    """
    Development configuration with debug mode enabled.
    Uses SQLite database for easy local development.
    """
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG').upper()

    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///leafcare_dev.db'
    )

    # Relaxed rate limiting for development
    RATELIMIT_DEFAULT = '1000 per hour'


class TestingConfig(Config):
    """
    Testing configuration for automated tests.
    Uses in-memory SQLite database for fast test execution.
    """
    TESTING = True
    DEBUG = True

    # In-memory database for testing
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # Disable rate limiting during tests
    RATELIMIT_ENABLED = False

    # Fast hashing, no simulated latency, no retry sleeps
    BCRYPT_LOG_ROUNDS = 4
    MOCK_AI_LATENCY = (0.0, 0.0)
    ML_API_BACKOFF_BASE = 0.0
    USE_MOCK_AI = True

    JWT_SECRET_KEY = 'test-access-secret-with-enough-length-for-hs256'
    JWT_REFRESH_SECRET_KEY = 'test-refresh-secret-with-enough-length-for-hs256'


class ProductionConfig(Config):
    """
    Production configuration with security hardening.
    Requires all secrets to be set via environment variables.
    """
    DEBUG = False
    TESTING = False

    # Production requires proper DATABASE_URL and real secrets
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    JWT_REFRESH_SECRET_KEY = os.getenv('JWT_REFRESH_SECRET_KEY')

    # Use Redis for rate limiting in production
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL', 'memory://')

    REQUIRED_SETTINGS = ('SQLALCHEMY_DATABASE_URI', 'JWT_SECRET_KEY', 'JWT_REFRESH_SECRET_KEY')


# =============================================================================
# Configuration Dictionary
# Maps environment names to configuration classes
# =============================================================================
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """
    Get the appropriate configuration based on FLASK_ENV environment variable.

    Args:
        config_name: Explicit environment name (optional)

    Returns:
        Config: Configuration class for the current environment
    """
    env = config_name or os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
