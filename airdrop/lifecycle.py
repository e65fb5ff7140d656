"""
File lifecycle coordinator.

Keeps a blob in object storage and its FileRecord consistent across
create, update and delete, and keeps each owner's records out of reach of
everyone else. Blobs are always written before their record is inserted,
and removed before their record is deleted.
"""
import logging
import re
import secrets
import uuid

from django.conf import settings

from .errors import DependencyFailure, Forbidden, InvalidInput, MetadataError, NotFound, StorageError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'
MiB = 1024 * 1024

_UNSAFE = re.compile(r'[^a-z0-9]')


def normalize_content_type(content_type):
    """Lowercased type/subtype, or octet-stream when missing or unparsable"""
    if not content_type:
        return DEFAULT_CONTENT_TYPE
    value = content_type.split(';', 1)[0].strip().lower()
    main, sep, sub = value.partition('/')
    if not sep or not main or not sub:
        return DEFAULT_CONTENT_TYPE
    return value


def storage_extension(filename, content_type):
    """
    Extension for the stored object name: the filename's last segment
    reduced to [a-z0-9], then the MIME subtype reduced the same way (unless
    the type is unknown), then "bin". Only a display hint, the bytes are
    never inspected.
    """
    ext = ''
    if filename and '.' in filename:
        ext = _UNSAFE.sub('', filename.rsplit('.', 1)[1].lower())
    if not ext and content_type and content_type != DEFAULT_CONTENT_TYPE:
        ext = _UNSAFE.sub('', content_type.rsplit('/', 1)[-1].lower())
    return ext or 'bin'


def build_storage_path(owner_id, filename, content_type):
    """Returns (storage_path, storage_name) for a fresh upload"""
    storage_name = f"{uuid.uuid4()}.{storage_extension(filename, content_type)}"
    return f"{owner_id}/{storage_name}", storage_name


def new_share_token():
    return secrets.token_urlsafe(24)


class UploadPolicy:
    """Size ceiling plus an optional MIME allow-list for one upload variant"""

    def __init__(self, max_size, allowed_types=None, type_message=None, size_message=None):
        self.max_size = max_size
        self.allowed_types = allowed_types
        self.type_message = type_message or 'Invalid file type'
        self.size_message = size_message or f"File too large (max {max_size // MiB}MB)"

    def check(self, upload):
        if self.allowed_types is not None and normalize_content_type(upload.content_type) not in self.allowed_types:
            raise InvalidInput(self.type_message)
        if upload.size > self.max_size:
            raise InvalidInput(self.size_message)


def file_policy():
    return UploadPolicy(settings.AIRDROP_MAX_FILE_SIZE)


def photo_policy():
    max_size = settings.AIRDROP_MAX_PHOTO_SIZE
    return UploadPolicy(
        max_size,
        allowed_types=list(settings.AIRDROP_PHOTO_TYPES),
        type_message='Invalid file type. Allowed: JPEG, PNG, GIF, WebP',
        size_message=f"File too large. Maximum size: {max_size // MiB}MB",
    )


class UploadResult:
    def __init__(self):
        self.uploaded = []
        self.errors = []

    @property
    def success(self):
        return len(self.uploaded) > 0


class FileLifecycle:
    def __init__(self, objects, records):
        self.objects = objects
        self.records = records

    def register(self, owner_id, storage_path, display_name, content_type, size_bytes, description=None):
        """
        Attach metadata to a blob the client already uploaded directly.
        The path must sit in the caller's own prefix and the blob must exist.
        """
        prefix = f"{owner_id}/"
        if not storage_path.startswith(prefix):
            raise Forbidden('Invalid file path')
        name = storage_path[len(prefix):]
        if not name or '/' in name or '\\' in name or name in ('.', '..'):
            raise Forbidden('Invalid file path')

        if not self.objects.exists(owner_id, name):
            raise NotFound('File not found in storage')
        if self.records.has_storage_path(storage_path):
            raise InvalidInput('File already registered')

        record = self.records.insert(
            owner_id=owner_id,
            storage_path=storage_path,
            display_name=display_name,
            content_type=normalize_content_type(content_type),
            size_bytes=size_bytes,
            description=description or None,
        )
        logger.info(f"Registered {storage_path} for {owner_id}")
        return record

    def ingest(self, owner_id, upload, description=None, policy=None):
        """
        Store one uploaded file and insert its record. Raises on any failure;
        a failed insert removes the blob it just wrote.
        """
        policy = policy or file_policy()
        policy.check(upload)

        content_type = normalize_content_type(upload.content_type)
        storage_path, _ = build_storage_path(owner_id, upload.name, content_type)

        try:
            self.objects.put(storage_path, upload, content_type, overwrite=False)
        except StorageError as e:
            logger.error(f"Upload of {upload.name} failed: {e}")
            raise StorageError('Upload failed') from e

        try:
            record = self.records.insert(
                owner_id=owner_id,
                storage_path=storage_path,
                display_name=upload.name,
                content_type=content_type,
                size_bytes=upload.size,
                description=description or None,
            )
        except MetadataError as e:
            failed = self.objects.delete([storage_path])
            if failed:
                logger.warning(f"Orphaned blob left at {storage_path} after failed insert")
            raise MetadataError('Failed to save metadata') from e

        logger.info(f"Uploaded {upload.name} to {storage_path}")
        return record

    def upload(self, owner_id, uploads, description=None, policy=None):
        """
        Ingest every file independently. Failures are collected as
        "{filename}: {reason}" and never stop the remaining files.
        """
        policy = policy or file_policy()
        result = UploadResult()
        for upload in uploads:
            try:
                record = self.ingest(owner_id, upload, description, policy)
            except (InvalidInput, DependencyFailure) as e:
                result.errors.append(f"{upload.name}: {e.detail}")
                continue
            result.uploaded.append(record)
        return result

    def prepare_direct_upload(self, owner_id, file_name, file_type, file_size=None):
        max_size = settings.AIRDROP_MAX_FILE_SIZE
        if file_size is not None and file_size > max_size:
            raise InvalidInput(f"File too large (max {max_size // MiB}MB)")

        storage_path, storage_name = build_storage_path(
            owner_id, file_name, normalize_content_type(file_type)
        )
        url, token = self.objects.signed_upload_url(storage_path, settings.AIRDROP_UPLOAD_URL_TTL)
        return {
            'signedUrl': url,
            'token': token,
            'filePath': storage_path,
            'fileName': storage_name,
        }

    def list(self, owner_id, content_types=None):
        """Owner's records, newest first, each carrying a signed `url` (or None)"""
        records = self.records.select_by_owner(owner_id, content_types=content_types)
        ttl = settings.AIRDROP_SIGNED_URL_TTL
        for record in records:
            record.url = self.objects.signed_url(record.storage_path, ttl)
        return records

    def get(self, owner_id, record_id):
        record = self.records.select_by_id(record_id, owner_id)
        if record is None:
            raise NotFound('File not found')
        return record

    def update(self, owner_id, record_id, is_favorite=None, tags=None,
               generate_share_link=False, remove_share_link=False):
        """
        Change only what was asked for. Asking to generate and remove a share
        link in the same call removes it.
        """
        record = self.get(owner_id, record_id)

        changes = {}
        if is_favorite is not None:
            changes['is_favorite'] = is_favorite
        if tags is not None:
            changes['tags'] = list(tags)
        if remove_share_link:
            changes['share_token'] = None
        elif generate_share_link:
            changes['share_token'] = new_share_token()

        if not changes:
            return record

        updated = self.records.update_fields(record_id, owner_id, changes)
        if updated is None:
            raise NotFound('File not found')
        return updated

    def delete(self, owner_id, record_id):
        """
        Remove the blob, then the record. A blob that cannot be removed is
        logged and the record is deleted anyway.
        """
        record = self.get(owner_id, record_id)

        failed = self.objects.delete([record.storage_path])
        if failed:
            logger.warning(f"Blob {record.storage_path} could not be deleted, removing record {record_id} anyway")

        if not self.records.delete_by_id(record_id, owner_id):
            raise NotFound('File not found')
        logger.info(f"Deleted {record.storage_path} for {owner_id}")
