"""
Blob Store
Stores uploaded files (bill attachments, profile images) and hands back an
opaque reference string that is persisted on the owning row.

The store is bound to the application in ``create_app`` as
``app.extensions['blob_store']``; services fetch it with ``get_blob_store()``.
"""
import mimetypes
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from utils.errors import ExternalDependencyError, ValidationError


class LocalBlobStore:
    """Filesystem-backed store rooted at *root*."""

    def __init__(self, root):
        self.root = os.path.abspath(root)

    def _path(self, reference):
        name = secure_filename(reference or '')
        if not name or name != reference:
            raise ValueError(f'Invalid blob reference: {reference!r}')
        return os.path.join(self.root, name)

    def put(self, data, content_type, filename=None):
        """Write *data* and return its reference."""
        ext = ''
        if filename and '.' in filename:
            ext = '.' + secure_filename(filename).rsplit('.', 1)[-1].lower()
        if not ext:
            ext = mimetypes.guess_extension(content_type or '') or ''
        reference = f'{uuid.uuid4().hex}{ext}'
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(self._path(reference), 'wb') as fh:
                fh.write(data)
        except OSError as exc:
            raise ExternalDependencyError(f'Could not store file: {exc.strerror or exc}') from exc
        return reference

    def open(self, reference):
        path = self._path(reference)
        if not os.path.exists(path):
            return None
        return path

    def delete(self, reference):
        """Remove *reference*.  Missing blobs are ignored."""
        try:
            os.remove(self._path(reference))
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ExternalDependencyError(f'Could not delete file: {exc.strerror or exc}') from exc


def get_blob_store():
    return current_app.extensions['blob_store']


def check_upload(file_storage, field='file'):
    """Validate an optional Werkzeug ``FileStorage``.  Returns False when nothing was sent."""
    if file_storage is None or not file_storage.filename:
        return False
    filename = secure_filename(file_storage.filename)
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if ext not in current_app.config['ALLOWED_UPLOAD_EXTENSIONS']:
        raise ValidationError.for_field(field, f'Files of type ".{ext}" are not allowed.')
    return True


def store_upload(file_storage, field='file'):
    """Validate and store a Werkzeug ``FileStorage``; return the reference or None."""
    if not check_upload(file_storage, field):
        return None
    filename = secure_filename(file_storage.filename)
    data = file_storage.read()
    if not data:
        return None
    return get_blob_store().put(data, file_storage.mimetype, filename=filename)


def release_blob(reference):
    """Delete a stored blob after its owning row is gone.  Failures are logged, not raised."""
    if not reference:
        return False
    try:
        get_blob_store().delete(reference)
    except (ExternalDependencyError, ValueError) as exc:
        current_app.logger.error(f'Failed to release blob {reference}: {exc}')
        return False
    return True
