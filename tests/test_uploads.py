import io
import os
import time

import pytest
from werkzeug.datastructures import FileStorage

from leafcare.errors import ValidationError, PayloadTooLargeError
from leafcare.services.uploads import (
    validate_upload,
    save_temp_upload,
    cleanup_stale_uploads,
    get_upload_size
)

ALLOWED = ('image/jpeg', 'image/png')


def make_file(content=b'\xff\xd8\xff' + b'\x00' * 64, filename='leaf.jpg', content_type='image/jpeg'):
    return FileStorage(stream=io.BytesIO(content), filename=filename, content_type=content_type)


def test_missing_file_is_rejected():
    with pytest.raises(ValidationError) as exc:
        validate_upload(None, ALLOWED, 1024)
    assert exc.value.message == 'No image file provided'


def test_empty_filename_counts_as_missing():
    with pytest.raises(ValidationError):
        validate_upload(make_file(filename=''), ALLOWED, 1024)


def test_unsupported_type_lists_allowed_types():
    with pytest.raises(ValidationError) as exc:
        validate_upload(make_file(content_type='application/pdf'), ALLOWED, 1024)
    assert 'image/jpeg, image/png' in exc.value.message


def test_type_is_checked_before_size():
    oversized_pdf = make_file(content=b'x' * 2048, content_type='application/pdf')

    with pytest.raises(ValidationError):
        validate_upload(oversized_pdf, ALLOWED, 1024)


def test_oversized_file_is_rejected_with_413():
    with pytest.raises(PayloadTooLargeError) as exc:
        validate_upload(make_file(content=b'x' * 2048), ALLOWED, 1024)
    assert exc.value.status_code == 413


def test_valid_file_passes_and_stream_is_untouched():
    file = make_file()

    validate_upload(file, ALLOWED, 1024)

    assert file.stream.tell() == 0
    assert get_upload_size(file) == 67


def test_save_temp_upload_uses_unique_sanitized_name(tmp_path):
    file = make_file(filename='../../etc/my leaf.JPG')

    path = save_temp_upload(file, str(tmp_path))

    assert os.path.dirname(path) == str(tmp_path)
    assert path.endswith('.jpg')
    with open(path, 'rb') as saved:
        assert saved.read().startswith(b'\xff\xd8\xff')


def test_cleanup_removes_only_stale_files(tmp_path):
    stale = tmp_path / 'old.jpg'
    fresh = tmp_path / 'new.jpg'
    stale.write_bytes(b'old')
    fresh.write_bytes(b'new')
    two_days_ago = time.time() - 2 * 24 * 3600
    os.utime(stale, (two_days_ago, two_days_ago))

    removed = cleanup_stale_uploads(str(tmp_path), 24 * 3600)

    assert removed == 1
    assert not stale.exists()
    assert fresh.exists()


def test_cleanup_of_missing_directory_is_a_noop(tmp_path):
    assert cleanup_stale_uploads(str(tmp_path / 'missing'), 60) == 0
