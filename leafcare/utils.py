# =============================================================================
# LeafCare API
# utils.py - Utility Functions
#
# Common utility functions used across the application including
# validation, file naming, hashing, and response helpers.
# =============================================================================

import re
import hashlib
import hmac
import random
import string
from datetime import datetime
from flask import jsonify
from werkzeug.utils import secure_filename


# =============================================================================
# Validation Functions
# =============================================================================

PASSWORD_SPECIAL_CHARS = '@$!%*?&'

# bcrypt only accepts up to 72 bytes of input
PASSWORD_MAX_BYTES = 72


def validate_email(email: str) -> bool:
    """
    Validate email format using regex pattern.

    Args:
        email: Email address to validate

    Returns:
        bool: True if valid email format, False otherwise
    """
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def normalize_email(email) -> str:
    return (email or '').strip().lower()


def validate_password(password: str) -> tuple[bool, str]:
    """
    Validate password strength requirements.

    Requirements:
    - Between 8 characters and 72 bytes
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 number
    - At least 1 special character (@$!%*?&)

    Args:
        password: Password to validate

    Returns:
        tuple: (is_valid: bool, message: str)
    """
    if not isinstance(password, str) or len(password) < 8:
        return False, "Password must be at least 8 characters long"
    if len(password.encode('utf-8')) > PASSWORD_MAX_BYTES:
        return False, f"Password must be at most {PASSWORD_MAX_BYTES} bytes long"
    if not re.search(r'[A-Z]', password):
        return False, "Password must contain at least one uppercase letter"
    if not re.search(r'[a-z]', password):
        return False, "Password must contain at least one lowercase letter"
    if not re.search(r'\d', password):
        return False, "Password must contain at least one number"
    if not any(char in PASSWORD_SPECIAL_CHARS for char in password):
        return False, f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})"
    return True, "Password is valid"


def validate_name(name) -> tuple[bool, str]:
    if not isinstance(name, str) or len(name.strip()) < 2:
        return False, "Name must be at least 2 characters long"
    if len(name.strip()) > 100:
        return False, "Name must be at most 100 characters long"
    return True, "Name is valid"


def parse_bool(value):
    """
    Parse a query-string boolean.

    Returns:
        bool or None: None when the value is missing or not recognized
    """
    if value is None:
        return None
    lowered = str(value).strip().lower()
    if lowered in ('true', '1', 'yes'):
        return True
    if lowered in ('false', '0', 'no'):
        return False
    return None


# =============================================================================
# File Handling Functions
# =============================================================================

def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename by removing special characters.

    Args:
        filename: Original filename

    Returns:
        str: Sanitized filename
    """
    # Remove special characters
    filename = re.sub(r'[^\w\s.-]', '', filename or '')
    # Replace spaces with underscores
    filename = re.sub(r'\s+', '_', filename)
    return secure_filename(filename)


def generate_unique_filename(original_filename: str) -> str:
    """
    Generate a unique filename with timestamp and random suffix.

    Args:
        original_filename: Original filename with extension

    Returns:
        str: Unique filename
    """
    original_filename = sanitize_filename(original_filename)
    ext = original_filename.rsplit('.', 1)[1].lower() if '.' in original_filename else 'jpg'

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=8))

    return f"{timestamp}_{random_suffix}.{ext}"


def format_megabytes(size_bytes: int) -> str:
    return f"{round(size_bytes / 1024 / 1024)}MB"


# =============================================================================
# Response Helpers
# =============================================================================

def success_response(data=None, message=None, status_code=200):
    """
    Create a standardized success response.

    Args:
        data: Response data (dict or list)
        message: Success message
        status_code: HTTP status code (default 200)

    Returns:
        tuple: (response, status_code)
    """
    response = {
        'success': True
    }

    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message

    return jsonify(response), status_code


def error_response(error, message=None, details=None, status_code=400):
    """
    Create a standardized error response.

    Args:
        error: Short error label
        message: Human-readable message (defaults to the label)
        details: Additional error details
        status_code: HTTP status code (default 400)

    Returns:
        tuple: (response, status_code)
    """
    response = {
        'success': False,
        'statusCode': status_code,
        'error': error,
        'message': message or error
    }

    if details:
        response['details'] = details

    return jsonify(response), status_code


# =============================================================================
# Misc Helpers
# =============================================================================

def generate_hash(text: str) -> str:
    """
    Generate SHA-256 hash of text.

    Args:
        text: Text to hash

    Returns:
        str: Hexadecimal hash string
    """
    return hashlib.sha256(text.encode()).hexdigest()


def hashes_match(text: str, expected_hash) -> bool:
    """Constant-time comparison of text's SHA-256 against a stored hash."""
    if not expected_hash:
        return False
    return hmac.compare_digest(generate_hash(text), expected_hash)


def clamp(value, lower=0.0, upper=1.0):
    return max(lower, min(upper, value))
