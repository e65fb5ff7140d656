"""
Object store gateway.

Wraps a Django storage backend and scopes every blob under "{owner_id}/".
Download and direct-upload links are signed with django.core.signing and
served by the blob views, so any backend Django can talk to works here.
"""
import logging
import mimetypes
import time

from django.conf import settings
from django.core import signing
from django.core.exceptions import SuspiciousOperation
from django.core.files import File
from django.core.files.base import ContentFile
from django.urls import reverse

from .errors import Forbidden, ObjectExists, StorageError

logger = logging.getLogger(__name__)

DOWNLOAD = 'airdrop.blob.download'
UPLOAD = 'airdrop.blob.upload'


class ObjectStore:
    def __init__(self, storage):
        self._storage = storage

    def put(self, path, content, content_type, overwrite=False):
        """
        Write a blob at exactly `path`. Without overwrite an existing object
        is an error; it is never silently replaced or renamed.
        """
        if not isinstance(content, File):
            content = ContentFile(content)
        try:
            if self._storage.exists(path):
                if not overwrite:
                    raise ObjectExists(f"Object already exists at {path}")
                self._storage.delete(path)
            saved_name = self._storage.save(path, content)
        except ObjectExists:
            raise
        except (OSError, SuspiciousOperation) as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Failed to write {path}") from e

        if saved_name != path:
            # Backend picked another name, so something raced us to the path
            self._storage.delete(saved_name)
            raise ObjectExists(f"Object already exists at {path}")

        logger.info(f"Stored {path} ({content_type}, {content.size} bytes)")
        return path

    def delete(self, paths):
        """
        Best-effort batch delete. Missing objects are not an error.
        Returns the paths that could not be removed.
        """
        failed = []
        for path in paths:
            try:
                self._storage.delete(path)
            except (OSError, SuspiciousOperation) as e:
                logger.error(f"Failed to delete {path}: {e}")
                failed.append(path)
        return failed

    def exists(self, prefix, name):
        """True if the listing of `prefix` contains an object called `name`"""
        try:
            _dirs, files = self._storage.listdir(prefix)
        except FileNotFoundError:
            return False
        except (OSError, SuspiciousOperation) as e:
            logger.error(f"Failed to list {prefix}: {e}")
            raise StorageError(f"Failed to list {prefix}") from e
        return name in files

    def open(self, path):
        return self._storage.open(path, 'rb')

    def has_object(self, path):
        try:
            return self._storage.exists(path)
        except (OSError, SuspiciousOperation):
            return False

    def signed_url(self, path, ttl):
        """
        Time-limited bearer download URL, or None if one cannot be issued.
        """
        try:
            token = self._sign(path, ttl, DOWNLOAD)
            return self._absolute(reverse('blob_download', args=[token]))
        except Exception as e:
            logger.warning(f"Could not sign download URL for {path}: {e}")
            return None

    def signed_upload_url(self, path, ttl):
        """Returns (url, token) for a one-shot PUT of the blob at `path`"""
        try:
            token = self._sign(path, ttl, UPLOAD)
            return self._absolute(reverse('blob_upload', args=[token])), token
        except Exception as e:
            logger.error(f"Could not sign upload URL for {path}: {e}")
            raise StorageError('Failed to create upload URL') from e

    def resolve_token(self, token, purpose):
        """Return the path a signed token grants access to"""
        try:
            payload = signing.loads(token, salt=purpose)
        except signing.BadSignature:
            raise Forbidden('Invalid or expired link')
        if not isinstance(payload, dict) or payload.get('exp', 0) < time.time():
            raise Forbidden('Invalid or expired link')
        return payload['path']

    def guess_type(self, path):
        content_type, _ = mimetypes.guess_type(path)
        return content_type or 'application/octet-stream'

    def _sign(self, path, ttl, purpose):
        return signing.dumps({'path': path, 'exp': int(time.time()) + int(ttl)}, salt=purpose)

    def _absolute(self, url):
        base = getattr(settings, 'AIRDROP_PUBLIC_URL', '')
        return f"{base.rstrip('/')}{url}" if base else url
