# =============================================================================
# LeafCare API
# services/uploads.py - Upload Validation and Temporary Storage
#
# Uploaded images are validated before anything else happens, then written
# to a temporary directory for the classifier proxy, which deletes them.
# =============================================================================

import os
import time
import logging

from ..errors import ValidationError, PayloadTooLargeError
from ..constants import MESSAGES
from ..utils import generate_unique_filename, format_megabytes

logger = logging.getLogger(__name__)


def get_upload_size(file) -> int:
    """
    Size of an uploaded file in bytes.

    Reads the stream length without consuming it.
    """
    stream = file.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def validate_upload(file, allowed_mime_types, max_size):
    """
    Validate an uploaded image.

    Checks, in order: presence, MIME type, size.

    Args:
        file: werkzeug FileStorage (or None)
        allowed_mime_types: Iterable of accepted MIME types
        max_size: Maximum size in bytes

    Raises:
        ValidationError: Missing file or unsupported type
        PayloadTooLargeError: File larger than max_size
    """
    if file is None or not getattr(file, 'filename', ''):
        raise ValidationError(MESSAGES['NO_IMAGE'], details={'field': 'image'})

    allowed = list(allowed_mime_types)
    if file.mimetype not in allowed:
        raise ValidationError(
            f"Invalid file type. Allowed types: {', '.join(allowed)}",
            details={'received': file.mimetype, 'allowed': allowed}
        )

    size = get_upload_size(file)
    if size > max_size:
        raise PayloadTooLargeError(
            f"File too large. Maximum size: {format_megabytes(max_size)}",
            details={'size': size, 'maxSize': max_size}
        )


def save_temp_upload(file, temp_dir) -> str:
    """
    Write a validated upload to the temp directory.

    Returns:
        str: Path of the written file; the caller owns its deletion
    """
    os.makedirs(temp_dir, exist_ok=True)
    path = os.path.join(temp_dir, generate_unique_filename(file.filename))
    file.stream.seek(0)
    file.save(path)
    logger.debug(f"Saved upload {file.filename} to {path}")
    return path


def cleanup_stale_uploads(temp_dir, max_age_seconds) -> int:
    """
    Remove temp files older than max_age_seconds.

    Returns:
        int: Number of files removed
    """
    if not os.path.isdir(temp_dir):
        return 0

    removed = 0
    cutoff = time.time() - max_age_seconds

    for name in os.listdir(temp_dir):
        path = os.path.join(temp_dir, name)
        try:
            if os.path.isfile(path) and os.path.getmtime(path) < cutoff:
                os.remove(path)
                removed += 1
                logger.debug(f"Cleaned up old temp file: {path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {path}: {e}")

    return removed
