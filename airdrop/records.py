"""
Metadata store gateway for FileRecord rows.

Every lookup by id is filtered by owner_id in the query itself. The share
token lookup is the one public path and is deliberately not owner-filtered.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError

from .errors import MetadataError
from .models import FileRecord

logger = logging.getLogger(__name__)


class FileRecordStore:
    def insert(self, **fields):
        try:
            return FileRecord.objects.create(**fields)
        except DatabaseError as e:
            logger.error(f"Failed to insert record for {fields.get('storage_path')}: {e}")
            raise MetadataError('Failed to save file metadata') from e

    def select_by_owner(self, owner_id, content_types=None):
        queryset = FileRecord.objects.filter(owner_id=owner_id)
        if content_types is not None:
            queryset = queryset.filter(content_type__in=content_types)
        try:
            return list(queryset.order_by('-created_at'))
        except DatabaseError as e:
            logger.error(f"Failed to list records for {owner_id}: {e}")
            raise MetadataError('Failed to fetch files') from e

    def select_by_id(self, record_id, owner_id):
        try:
            return FileRecord.objects.filter(id=record_id, owner_id=owner_id).first()
        except ValidationError:
            # Malformed ids can never match a record
            return None
        except DatabaseError as e:
            logger.error(f"Failed to fetch record {record_id}: {e}")
            raise MetadataError('Failed to fetch file') from e

    def select_by_share_token(self, token):
        try:
            return FileRecord.objects.filter(share_token=token).first()
        except DatabaseError as e:
            logger.error(f"Failed to resolve share token: {e}")
            raise MetadataError('Failed to fetch shared file') from e

    def has_storage_path(self, storage_path):
        try:
            return FileRecord.objects.filter(storage_path=storage_path).exists()
        except DatabaseError as e:
            logger.error(f"Failed to look up {storage_path}: {e}")
            raise MetadataError('Failed to fetch file') from e

    def update_fields(self, record_id, owner_id, changes):
        """Apply `changes` and return the fresh row, or None if nothing matched"""
        try:
            updated = FileRecord.objects.filter(id=record_id, owner_id=owner_id).update(**changes)
        except ValidationError:
            return None
        except DatabaseError as e:
            logger.error(f"Failed to update record {record_id}: {e}")
            raise MetadataError('Failed to update file') from e
        if not updated:
            return None
        return self.select_by_id(record_id, owner_id)

    def delete_by_id(self, record_id, owner_id):
        try:
            deleted, _ = FileRecord.objects.filter(id=record_id, owner_id=owner_id).delete()
        except ValidationError:
            return False
        except DatabaseError as e:
            logger.error(f"Failed to delete record {record_id}: {e}")
            raise MetadataError('Failed to delete file') from e
        return deleted > 0
